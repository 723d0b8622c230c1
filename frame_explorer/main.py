#!/usr/bin/env python3
# frame_explorer/main.py
"""
Command-line front end for the frame index.

Runs a tag search (progressive frame hydration plus album discovery), lists
tags, or checks whether the backend is reachable. Run it as a module:
`python -m frame_explorer.main search 70 12`.
"""

# The config_service MUST be the very first import to ensure logging is
# configured before any other modules attempt to log.
from frame_explorer.services import config

import argparse
import asyncio
import logging
import sys
from typing import List

from frame_explorer.frame_api import check_api_status
from frame_explorer.services import api_client, keyword_service, search_service
from frame_explorer.services.album_service import AlbumBatchEvent
from frame_explorer.session_state import LoadState, SearchSession

logger = logging.getLogger(__name__)


def _print_notifications(session: SearchSession) -> None:
    for notification in session.drain_notifications():
        stream = sys.stderr if notification.level == "error" else sys.stdout
        print(f"[{notification.level.upper()}] {notification.title}: {notification.message}", file=stream)


async def list_tags(limit: int) -> int:
    async with api_client:
        tags = await keyword_service.list_tags()
    for tag in tags[:limit] if limit else tags:
        kind = "entity" if tag.is_entity else "tag"
        print(f"{tag.id:>6}  {tag.name:<30} {tag.frame_count:>8} frames  ({kind})")
    return 0


async def run_search(tag_ids: List[int], progressive: bool) -> int:
    """
    Runs one search and prints each committed batch as it arrives.

    Returns:
        Process exit code: 1 if the frame search failed, 0 otherwise.
    """
    session = SearchSession()
    async with api_client:
        async for event in search_service.search(session, tag_ids, progressive=progressive):
            if isinstance(event, AlbumBatchEvent):
                for album in event.albums:
                    filled = sum(1 for cell in album.collage if cell)
                    print(
                        f"album  {album.id:<12} {album.frame_count:>6} frames, "
                        f"{album.matched_frame_count} matching, collage {filled}/4, tags: {', '.join(album.tags[:8])}"
                    )
            else:
                for frame in event.frames:
                    print(f"frame  {frame.id:<12} {frame.width}x{frame.height}  tags: {', '.join(frame.tags)}")
                print(f"       ... {event.visible} frame(s) visible ({event.stage.value})")
            _print_notifications(session)

    _print_notifications(session)
    print(
        f"Done: {len(session.frames)} frame(s), {len(session.albums)} album(s) "
        f"from {len(session.resolved_frame_ids)} resolved frame ID(s)."
    )
    logger.debug(f"Session state: {session.get_session_info()}")
    return 1 if session.frames.state == LoadState.FAILED else 0


def show_status(timeout: float) -> int:
    status = check_api_status(config.api_base_url, timeout=timeout)
    print(status.message)
    if status.elapsed_ms is not None:
        print(f"Response time: {status.elapsed_ms:.0f} ms")
    return 0 if status.reachable else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Frame Explorer: tag search and album discovery")
    subparsers = parser.add_subparsers(dest='command', required=True)

    search_parser = subparsers.add_parser('search', help="Find frames and albums for one or more tag IDs.")
    search_parser.add_argument('tag_ids', type=int, nargs='+', help="Tag IDs to search for.")
    search_parser.add_argument('--no-progressive', action='store_true', help="Hydrate everything in a single pass.")

    tags_parser = subparsers.add_parser('tags', help="List the tags known to the index.")
    tags_parser.add_argument('--limit', type=int, default=0, help="Show at most this many tags.")

    status_parser = subparsers.add_parser('status', help="Check that the frame index is reachable.")
    status_parser.add_argument('--timeout', type=float, default=5.0, help="Seconds to wait for the backend.")
    return parser


def main(argv: List[str] | None = None) -> None:
    """
    Main entry point for the command-line tool.

    Parses arguments and runs the requested command within a top-level error
    handler to ensure all failures are logged.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        logger.debug(f"Running command '{args.command}' against {config.api_base_url}")
        if args.command == 'search':
            exit_code = asyncio.run(run_search(args.tag_ids, progressive=not args.no_progressive))
        elif args.command == 'tags':
            exit_code = asyncio.run(list_tags(args.limit))
        else:
            exit_code = show_status(args.timeout)
    except Exception as e:
        # This is the master catch-all for any unhandled exception.
        logger.critical(f"FATAL: An unhandled exception occurred: {e}", exc_info=True)
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
