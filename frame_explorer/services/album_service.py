# frame_explorer/services/album_service.py
"""
Discovers existing albums that contain at least one frame of the current result.

The index has no server-side join between tags and albums, so discovery walks
every configuration, lists its albums, and intersects each album's frame IDs
with the target set. Matching albums are then decorated with a thumbnail
collage and a small sample of tag names.

Only the first `max_albums_scanned_per_config` albums of each configuration
are scanned. Albums past that cap are never reported, even if they would
match; raise the setting (or move the filtering server-side) when recall
matters more than latency.
"""
import asyncio
import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, FrozenSet, Iterable, List, Optional

from .batch_scheduler import BatchSchedule, BatchScheduler, SleepFunc, hydrate_chunk
from .config_service import config
from ..exceptions import AlbumDiscoveryError, AppServiceError
from ..frame_api import DEFAULT_MIME_TYPE, FrameApiClient, to_data_uri
from ..models import COLLAGE_SIZE, Album, Configuration, unique_in_order
from ..session_state import CycleWriter, LoadState, SearchSession

logger = logging.getLogger(__name__)


class AlbumStage(str, Enum):
    FIRST_BATCH = "first_batch"
    BACKGROUND = "background"
    ALL = "all"


@dataclass
class AlbumBatchEvent:
    """Emitted after each commit of discovered albums to the visible list."""
    generation: int
    stage: AlbumStage
    config_id: Optional[int] = None
    albums: List[Album] = field(default_factory=list)
    visible: int = 0
    state: LoadState = LoadState.IDLE


def default_album_schedule() -> BatchSchedule:
    return BatchSchedule(
        chunk_size=int(config.get('albums.batch_size', 2)),
        delay_seconds=config.get_seconds('albums.batch_delay_ms', 200),
    )


class AlbumService:
    def __init__(
        self,
        api: FrameApiClient,
        max_albums_scanned_per_config: Optional[int] = None,
        first_batch_size: Optional[int] = None,
        background_schedule: Optional[BatchSchedule] = None,
        progressive: Optional[bool] = None,
        mime_type: Optional[str] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.api = api
        self.max_albums_scanned_per_config = (
            max_albums_scanned_per_config if max_albums_scanned_per_config is not None
            else int(config.get('albums.max_albums_scanned_per_config', 10))
        )
        self.first_batch_size = first_batch_size if first_batch_size is not None else int(config.get('albums.first_batch_size', 2))
        self.background_schedule = background_schedule or default_album_schedule()
        if progressive is None:
            progressive = config.get('albums.progressive', config.get('frames.progressive', True))
        self.progressive = bool(progressive)
        self.mime_type = mime_type or config.get('api.image_mime_type', DEFAULT_MIME_TYPE)
        self.album_page_size = int(config.get('albums.album_page_size', 1000))
        self.album_frame_order = config.get('albums.album_frame_order', 'DESC')
        self.thumbnail_limit = min(int(config.get('albums.thumbnail_limit', COLLAGE_SIZE)), COLLAGE_SIZE)
        self.tag_sample_size = int(config.get('albums.tag_sample_size', 5))
        self._sleep = sleep

    # --- Per-album work ---

    async def _thumbnails(self, frame_ids: List[int]) -> List[str]:
        results = await asyncio.gather(
            *(self.api.get_frame_thumbnail(frame_id) for frame_id in frame_ids),
            return_exceptions=True,
        )
        thumbnails = []
        for frame_id, result in zip(frame_ids, results):
            if isinstance(result, Exception):
                logger.debug(f"Leaving collage cell empty for frame {frame_id}: {result}")
            elif result:
                thumbnails.append(to_data_uri(result, self.mime_type))
        return thumbnails

    async def _sampled_tags(self, frame_ids: List[int]) -> List[str]:
        results = await asyncio.gather(
            *(self.api.get_frame_tags(frame_id) for frame_id in frame_ids),
            return_exceptions=True,
        )
        names = []
        for frame_id, result in zip(frame_ids, results):
            if isinstance(result, Exception):
                logger.warning(f"Error getting tags for frame {frame_id}: {result}")
                continue
            names.extend(frame_tag.tag_name for frame_tag in result)
        return unique_in_order(names)

    async def build_album(self, config_id: int, album_id: int, target: FrozenSet[int]) -> Optional[Album]:
        """
        Intersects one album with the target frame set and, on a match, builds its aggregate.

        Returns:
            The Album, or None if no frame of the album is in `target`.

        Raises:
            FrameApiError: If the album's frame list, count or thumbnail selection cannot be read.
        """
        album_frame_ids = await self.api.get_album_frame_ids(
            config_id, album_id, page_size=self.album_page_size, order=self.album_frame_order
        )
        matching = unique_in_order(frame_id for frame_id in album_frame_ids if frame_id in target)
        if not matching:
            logger.debug(f"Album {album_id} in config {config_id}: no match among {len(album_frame_ids)} frame(s)")
            return None

        logger.info(f"Album {album_id} in config {config_id} has {len(matching)} matching frame(s)")
        frame_count = await self.api.get_album_frame_count(config_id, album_id)
        thumbnail_ids = await self.api.get_album_thumbnail_frame_ids(config_id, album_id, frame_count)
        sample = matching[:self.tag_sample_size]
        thumbnails, tags = await asyncio.gather(
            self._thumbnails(thumbnail_ids[:self.thumbnail_limit]),
            self._sampled_tags(sample),
        )
        return Album(
            config_id=config_id,
            album_id=album_id,
            frame_count=frame_count,
            thumbnails=thumbnails,
            tags=tags,
            matched_frame_sample=sample,
            matched_frame_count=len(matching),
        )

    async def get_album_frames(self, album: Album) -> List[int]:
        """
        Lists every frame ID of an album, for opening it after discovery.

        Raises:
            AlbumDiscoveryError: If the album's frames cannot be read.
        """
        try:
            frame_ids = await self.api.get_album_frame_ids(
                album.config_id, album.album_id, page_size=self.album_page_size, order=self.album_frame_order
            )
        except AppServiceError as e:
            logger.error(f"Error getting frames for album {album.album_id} in config {album.config_id}: {e}", exc_info=True)
            raise AlbumDiscoveryError(f"Could not load frames of {album.name}: {e}") from e
        logger.info(f"Album {album.album_id} in config {album.config_id}: {len(frame_ids)} frame(s)")
        return frame_ids

    # --- Discovery ---

    def _event(self, writer: CycleWriter[Album], stage: AlbumStage, added: List[Album], config_id: Optional[int] = None) -> AlbumBatchEvent:
        return AlbumBatchEvent(
            generation=writer.generation,
            stage=stage,
            config_id=config_id,
            albums=added,
            visible=len(writer.results),
            state=writer.results.state,
        )

    async def find_albums(
        self,
        frame_ids: Iterable[int],
        writer: CycleWriter[Album],
        progressive: Optional[bool] = None,
    ) -> AsyncIterator[AlbumBatchEvent]:
        """
        Scans every configuration for albums intersecting `frame_ids`.

        In progressive mode a configuration with more candidates than the first
        batch commits its first albums immediately and the rest in throttled
        background chunks. Smaller configurations, and everything in
        non-progressive mode, are buffered and committed together.

        Raises:
            AlbumDiscoveryError: If the configuration list cannot be read. Failures
                for a single configuration or album are logged and skipped.
        """
        progressive = self.progressive if progressive is None else progressive
        target = frozenset(int(frame_id) for frame_id in frame_ids)
        if not target:
            writer.set_state(LoadState.COMPLETE)
            return

        writer.set_state(LoadState.FIRST_PAGE_LOADING if progressive else LoadState.ALL_AT_ONCE_LOADING)
        try:
            config_ids = await self.api.list_config_ids()
        except AppServiceError as e:
            raise AlbumDiscoveryError(f"Could not list album configurations: {e}") from e
        logger.info(f"Scanning {len(config_ids)} configuration(s) for albums matching {len(target)} frame(s)")

        pending: List[Album] = []
        for config_id in config_ids:
            if not writer.active:
                return
            try:
                configuration = Configuration(id=config_id, album_ids=await self.api.list_album_ids(config_id))
            except Exception as e:
                logger.error(f"Error processing configuration {config_id}: {e}", exc_info=True)
                continue

            candidates = configuration.album_ids[:self.max_albums_scanned_per_config]
            if configuration.album_count > len(candidates):
                logger.info(
                    f"Config {config_id}: scanning {len(candidates)} of {configuration.album_count} album(s) "
                    f"(max_albums_scanned_per_config={self.max_albums_scanned_per_config})"
                )
            build = functools.partial(self.build_album, config_id, target=target)

            if progressive and len(candidates) > self.first_batch_size:
                first_batch, _, _ = await hydrate_chunk(candidates[:self.first_batch_size], build)
                added = writer.commit(pending + first_batch)
                if added is None:
                    return
                pending = []
                writer.set_state(LoadState.FIRST_PAGE_VISIBLE)
                yield self._event(writer, AlbumStage.FIRST_BATCH, added, config_id)

                scheduler = BatchScheduler(self.background_schedule, sleep=self._sleep)
                async for batch in scheduler.run(candidates[self.first_batch_size:], build, writer):
                    yield self._event(writer, AlbumStage.BACKGROUND, batch.added, config_id)
            else:
                albums, _, _ = await hydrate_chunk(candidates, build)
                pending.extend(albums)

        if pending:
            added = writer.commit(pending)
            if added is None:
                return
            yield self._event(writer, AlbumStage.ALL, added)
        if writer.set_state(LoadState.COMPLETE):
            logger.info(f"Album discovery complete: {len(writer.results)} matching album(s)")

    async def fetch_albums_for_frames(
        self,
        session: SearchSession,
        frame_ids: Iterable[int],
        progressive: Optional[bool] = None,
    ) -> AsyncIterator[AlbumBatchEvent]:
        """
        Starts a new album cycle and streams discovery progress.

        Failures never escape: the album list is cleared, the error is stored on
        it and one error notification is queued on the session.
        """
        writer = session.start_album_cycle()
        async for event in self.stream_into(session, writer, frame_ids, progressive):
            yield event

    async def stream_into(
        self,
        session: SearchSession,
        writer: CycleWriter[Album],
        frame_ids: Iterable[int],
        progressive: Optional[bool] = None,
    ) -> AsyncIterator[AlbumBatchEvent]:
        """Runs discovery for an already-started cycle, converting failures into session errors."""
        try:
            async for event in self.find_albums(frame_ids, writer, progressive):
                yield event
        except Exception as e:
            session.fail_cycle(writer, e, "Failed to fetch albums")
