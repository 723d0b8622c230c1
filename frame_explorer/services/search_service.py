# frame_explorer/services/search_service.py
"""
Runs a full search for a tag selection: resolve the tags once, then hydrate the
matching frames and discover the albums containing them side by side.
"""
import asyncio
import logging
from typing import AsyncIterator, Iterable, List, Optional, Union

from .album_service import AlbumBatchEvent, AlbumService
from .frame_service import FrameBatchEvent, FrameService
from .keyword_service import KeywordService
from ..session_state import LoadState, SearchSession

logger = logging.getLogger(__name__)

SearchEvent = Union[FrameBatchEvent, AlbumBatchEvent]

_STREAM_DONE = object()


async def merge_streams(streams: List[AsyncIterator]) -> AsyncIterator:
    """
    Drives several async iterators concurrently and yields their items as they arrive.

    Items from one stream keep their relative order. Unfinished streams are
    cancelled if the consumer stops early.
    """
    queue: asyncio.Queue = asyncio.Queue()

    async def pump(stream: AsyncIterator) -> None:
        try:
            async for item in stream:
                await queue.put(item)
        finally:
            aclose = getattr(stream, 'aclose', None)
            if aclose is not None:
                await aclose()
            await queue.put(_STREAM_DONE)

    tasks = [asyncio.ensure_future(pump(stream)) for stream in streams]
    try:
        remaining = len(tasks)
        while remaining:
            item = await queue.get()
            if item is _STREAM_DONE:
                remaining -= 1
                continue
            yield item
        # Re-raise anything a stream let escape.
        await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        # Let cancelled pumps unwind so their streams are closed before returning.
        await asyncio.gather(*tasks, return_exceptions=True)


class SearchService:
    def __init__(self, keyword_service: KeywordService, frame_service: FrameService, album_service: AlbumService):
        self.keyword_service = keyword_service
        self.frame_service = frame_service
        self.album_service = album_service

    async def search(
        self,
        session: SearchSession,
        tag_ids: Iterable[int],
        progressive: Optional[bool] = None,
    ) -> AsyncIterator[SearchEvent]:
        """
        Replaces the session's frames and albums with the results for `tag_ids`.

        Starting a search supersedes any search still running on the same
        session: its remaining batches are discarded instead of committed.

        Yields:
            FrameBatchEvent and AlbumBatchEvent objects, interleaved as they commit.
        """
        tag_ids = list(tag_ids)
        frame_writer = session.start_frame_cycle()
        album_writer = session.start_album_cycle()
        session.selected_tag_ids = tag_ids
        session.resolved_frame_ids = []
        if not tag_ids:
            logger.debug("Empty tag selection; cleared results")
            return

        frame_progressive = self.frame_service.progressive if progressive is None else progressive
        album_progressive = self.album_service.progressive if progressive is None else progressive
        frame_writer.set_state(LoadState.FIRST_PAGE_LOADING if frame_progressive else LoadState.ALL_AT_ONCE_LOADING)
        album_writer.set_state(LoadState.FIRST_PAGE_LOADING if album_progressive else LoadState.ALL_AT_ONCE_LOADING)

        try:
            frame_ids = await self.keyword_service.resolve_frame_ids(tag_ids)
        except Exception as e:
            # One failure, one notification: the album list is cleared quietly.
            session.fail_cycle(frame_writer, e, "Failed to fetch frames")
            session.fail_cycle(album_writer, e, "Failed to fetch albums", notify=False)
            return

        if not frame_writer.active:
            return
        session.resolved_frame_ids = frame_ids

        streams = [
            self.frame_service.stream_into(session, frame_writer, frame_ids, frame_progressive),
            self.album_service.stream_into(session, album_writer, frame_ids, album_progressive),
        ]
        async for event in merge_streams(streams):
            yield event
        logger.info(
            f"Search for tags {tag_ids} finished: {len(session.frames)} frame(s), {len(session.albums)} album(s)"
        )
