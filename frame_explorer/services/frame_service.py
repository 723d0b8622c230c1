# frame_explorer/services/frame_service.py
"""
Progressive hydration of frame IDs into displayable Frame records.

A large result is shown quickly by hydrating a small first page right away
and handing the rest to the background batch scheduler. Small results, or
callers that turn progressive mode off, get everything in a single pass.

Per-frame hydration makes three independent reads. Missing metadata drops the
frame; a missing thumbnail or tag list only leaves that field empty.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Iterable, List, Optional

from .batch_scheduler import BatchSchedule, BatchScheduler, SleepFunc, hydrate_chunk
from .config_service import config
from .keyword_service import KeywordService
from ..exceptions import AppServiceError, FrameFetchError
from ..frame_api import DEFAULT_MIME_TYPE, FrameApiClient, to_data_uri
from ..models import Frame, unique_in_order
from ..session_state import CycleWriter, LoadState, SearchSession

logger = logging.getLogger(__name__)


class FrameStage(str, Enum):
    FIRST_PAGE = "first_page"
    BACKGROUND = "background"
    ALL = "all"


@dataclass
class FrameBatchEvent:
    """Emitted after each commit of hydrated frames to the visible list."""
    generation: int
    stage: FrameStage
    frames: List[Frame] = field(default_factory=list)
    visible: int = 0
    failed: int = 0
    state: LoadState = LoadState.IDLE


def default_frame_schedule() -> BatchSchedule:
    return BatchSchedule(
        chunk_size=int(config.get('frames.batch_size', 18)),
        delay_seconds=config.get_seconds('frames.batch_delay_ms', 400),
        fast_delay_seconds=config.get_seconds('frames.small_result_delay_ms', 200),
        fast_threshold=int(config.get('frames.small_result_threshold', 36)),
    )


class FrameService:
    def __init__(
        self,
        api: FrameApiClient,
        keyword_service: KeywordService,
        first_page_size: Optional[int] = None,
        background_schedule: Optional[BatchSchedule] = None,
        progressive: Optional[bool] = None,
        mime_type: Optional[str] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.api = api
        self.keyword_service = keyword_service
        self.first_page_size = first_page_size if first_page_size is not None else int(config.get('frames.first_page_size', 9))
        self.background_schedule = background_schedule or default_frame_schedule()
        self.progressive = progressive if progressive is not None else bool(config.get('frames.progressive', True))
        self.mime_type = mime_type or config.get('api.image_mime_type', DEFAULT_MIME_TYPE)
        self._sleep = sleep

    # --- Per-frame hydration ---

    async def _thumbnail_uri(self, frame_id: int) -> str:
        try:
            return to_data_uri(await self.api.get_frame_thumbnail(frame_id), self.mime_type)
        except Exception as e:
            logger.debug(f"No thumbnail for frame {frame_id}: {e}")
            return ''

    async def _tag_names(self, frame_id: int) -> List[str]:
        try:
            frame_tags = await self.api.get_frame_tags(frame_id)
        except Exception as e:
            logger.debug(f"No tags for frame {frame_id}: {e}")
            return []
        return unique_in_order(frame_tag.tag_name for frame_tag in frame_tags)

    async def hydrate_frame(self, frame_id: int) -> Frame:
        """
        Loads metadata, thumbnail and tag names for one frame concurrently.

        Raises:
            FrameApiError: If the metadata read fails; the frame cannot be shown without it.
        """
        metadata, thumbnail, tag_names = await asyncio.gather(
            self.api.get_frame_metadata(frame_id),
            self._thumbnail_uri(frame_id),
            self._tag_names(frame_id),
        )
        return Frame.from_metadata(metadata, thumbnail=thumbnail, tags=tag_names)

    # --- Progressive loading ---

    def _event(self, writer: CycleWriter[Frame], stage: FrameStage, added: List[Frame], failed: int) -> FrameBatchEvent:
        return FrameBatchEvent(
            generation=writer.generation,
            stage=stage,
            frames=added,
            visible=len(writer.results),
            failed=failed,
            state=writer.results.state,
        )

    async def load_frames(
        self,
        frame_ids: Iterable[int],
        writer: CycleWriter[Frame],
        progressive: Optional[bool] = None,
    ) -> AsyncIterator[FrameBatchEvent]:
        """
        Hydrates `frame_ids` into the writer's result list, yielding after every commit.

        With progressive mode on and more IDs than fit on the first page, the
        first page is committed before any background chunk, and the loading
        indicator clears as soon as it is visible.
        """
        progressive = self.progressive if progressive is None else progressive
        frame_ids = unique_in_order(frame_ids)
        total = len(frame_ids)

        if not frame_ids:
            writer.set_state(LoadState.COMPLETE)
            return

        if progressive and total > self.first_page_size:
            writer.set_state(LoadState.FIRST_PAGE_LOADING)
            first_page, failed, _ = await hydrate_chunk(frame_ids[:self.first_page_size], self.hydrate_frame)
            added = writer.commit(first_page)
            if added is None:
                return
            writer.set_state(LoadState.FIRST_PAGE_VISIBLE)
            logger.info(f"First page visible: {len(added)} of {total} frame(s); loading the rest in the background")
            yield self._event(writer, FrameStage.FIRST_PAGE, added, failed)

            scheduler = BatchScheduler(self.background_schedule, sleep=self._sleep)
            async for batch in scheduler.run(frame_ids[self.first_page_size:], self.hydrate_frame, writer, total=total):
                logger.debug(f"Background chunk {batch.index}: +{len(batch.added)} frame(s), {batch.failed} failed")
                yield self._event(writer, FrameStage.BACKGROUND, batch.added, batch.failed)

            if writer.set_state(LoadState.COMPLETE):
                logger.info(f"Background load complete: {len(writer.results)} of {total} frame(s) visible")
        else:
            writer.set_state(LoadState.ALL_AT_ONCE_LOADING)
            frames, failed, _ = await hydrate_chunk(frame_ids, self.hydrate_frame)
            added = writer.commit(frames)
            if added is None:
                return
            writer.set_state(LoadState.COMPLETE)
            logger.info(f"Loaded {len(added)} of {total} frame(s) in one pass")
            yield self._event(writer, FrameStage.ALL, added, failed)

    async def fetch_frames_for_tags(
        self,
        session: SearchSession,
        tag_ids: Iterable[int],
        progressive: Optional[bool] = None,
    ) -> AsyncIterator[FrameBatchEvent]:
        """
        Starts a new frame cycle for a tag selection and streams its progress.

        Failures never escape: the frame list is cleared, the error is stored on
        it and one error notification is queued on the session.
        """
        tag_ids = list(tag_ids)
        writer = session.start_frame_cycle()
        session.selected_tag_ids = tag_ids
        session.resolved_frame_ids = []
        if not tag_ids:
            return

        progressive = self.progressive if progressive is None else progressive
        writer.set_state(LoadState.FIRST_PAGE_LOADING if progressive else LoadState.ALL_AT_ONCE_LOADING)
        try:
            frame_ids = await self.keyword_service.resolve_frame_ids(tag_ids)
            if writer.active:
                session.resolved_frame_ids = frame_ids
            async for event in self.load_frames(frame_ids, writer, progressive):
                yield event
        except Exception as e:
            session.fail_cycle(writer, e, "Failed to fetch frames")

    async def stream_into(
        self,
        session: SearchSession,
        writer: CycleWriter[Frame],
        frame_ids: Iterable[int],
        progressive: Optional[bool] = None,
    ) -> AsyncIterator[FrameBatchEvent]:
        """Hydrates already-resolved IDs for a started cycle, converting failures into session errors."""
        try:
            async for event in self.load_frames(frame_ids, writer, progressive):
                yield event
        except Exception as e:
            session.fail_cycle(writer, e, "Failed to fetch frames")

    # --- Single-frame operations ---

    async def get_frame_image(self, session: SearchSession, frame_id: int) -> str:
        """
        Loads a frame's full image on demand and stores it on the visible frame.

        Raises:
            FrameFetchError: If the image cannot be downloaded.
        """
        try:
            image = await self.api.get_frame_image(frame_id)
        except AppServiceError as e:
            logger.warning(f"Failed to load full image for frame {frame_id}: {e}")
            raise FrameFetchError(f"Failed to load frame image: {e}") from e

        data_uri = to_data_uri(image, self.mime_type)
        frame = session.frames.get(int(frame_id))
        if frame is not None:
            frame.full_image = data_uri
        return data_uri

    async def refresh_frame_tags(self, session: SearchSession, frame_id: int) -> Optional[List[str]]:
        """Re-reads one frame's tag names and updates the visible frame. Returns None on failure."""
        try:
            frame_tags = await self.api.get_frame_tags(frame_id)
        except AppServiceError as e:
            logger.error(f"Failed to update tags for frame {frame_id}: {e}")
            return None

        names = unique_in_order(frame_tag.tag_name for frame_tag in frame_tags)
        frame = session.frames.get(int(frame_id))
        if frame is not None:
            frame.tags = names
        return names
