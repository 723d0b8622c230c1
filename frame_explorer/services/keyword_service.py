# frame_explorer/services/keyword_service.py
"""
Tag-level operations against the frame index: listing tags, resolving a tag
selection to frame IDs, and editing the tags attached to a single frame.
"""
import logging
from typing import Iterable, List

from ..exceptions import AppServiceError, FrameIndexError
from ..frame_api import FrameApiClient
from ..models import BoundingBox, Tag, unique_in_order

logger = logging.getLogger(__name__)

# Resolution always covers every confidence level; callers cannot narrow it.
FULL_CONFIDENCE_RANGE = (0.0, 1.0)


class KeywordService:
    def __init__(self, api: FrameApiClient):
        self.api = api

    async def list_tags(self) -> List[Tag]:
        """
        Fetches every tag the index knows about, in the index's order.

        Raises:
            FrameIndexError: If the tag list cannot be retrieved.
        """
        try:
            tags = await self.api.list_tags()
        except AppServiceError as e:
            logger.error(f"Failed to fetch tags: {e}", exc_info=True)
            raise FrameIndexError(f"Could not retrieve tags: {e}") from e
        logger.info(f"Fetched {len(tags)} tags from the index")
        return tags

    async def resolve_frame_ids(
        self,
        tag_ids: Iterable[int],
        confidence_min: float = 0.0,
        confidence_max: float = 1.0,
    ) -> List[int]:
        """
        Resolves a tag selection to the IDs of frames carrying at least one of the tags.

        An empty selection returns an empty list without contacting the index.
        The confidence bounds are accepted for forward compatibility, but the
        request always covers the full range 0..1.

        Args:
            tag_ids: Selected tag IDs (strings from a UI are accepted).
            confidence_min: Requested lower confidence bound (currently not applied).
            confidence_max: Requested upper confidence bound (currently not applied).

        Returns:
            Frame IDs in the order the index returned them, without repeats.

        Raises:
            FrameIndexError: If the index cannot resolve the selection.
        """
        numeric_ids = unique_in_order(int(tag_id) for tag_id in tag_ids)
        if not numeric_ids:
            return []

        full_min, full_max = FULL_CONFIDENCE_RANGE
        if (confidence_min, confidence_max) != (full_min, full_max):
            logger.debug(
                f"Confidence bounds {confidence_min}..{confidence_max} requested; "
                f"resolving with {full_min}..{full_max}"
            )

        logger.info(f"Resolving frames for {len(numeric_ids)} tag(s): {numeric_ids}")
        try:
            frame_ids = await self.api.resolve_frames(numeric_ids, full_min, full_max)
        except AppServiceError as e:
            logger.error(f"Failed to resolve frames for tags {numeric_ids}: {e}", exc_info=True)
            raise FrameIndexError(str(e)) from e

        frame_ids = unique_in_order(frame_ids)
        logger.info(f"Tags {numeric_ids} resolved to {len(frame_ids)} frame(s)")
        return frame_ids

    async def rename_frame_tag(self, frame_id: int, source_tag_id: int, new_name: str) -> None:
        """
        Replaces one tag on a frame with a tag named `new_name`.

        Raises:
            ValueError: If `new_name` is blank.
            FrameApiError: If the index rejects the change.
        """
        new_name = (new_name or '').strip()
        if not new_name:
            raise ValueError("A new tag name is required.")
        logger.info(f"Renaming tag {source_tag_id} on frame {frame_id} to '{new_name}'")
        await self.api.rename_frame_tag(frame_id, source_tag_id, new_name)

    async def delete_frame_tag(self, frame_id: int, tag_id: int) -> None:
        """Removes one tag from a frame. Raises FrameApiError on failure."""
        logger.info(f"Deleting tag {tag_id} from frame {frame_id}")
        await self.api.delete_frame_tag(frame_id, tag_id)

    async def get_bounding_boxes(self, frame_id: int, tag_id: int) -> List[BoundingBox]:
        return await self.api.get_bounding_boxes(frame_id, tag_id)
