"""In-memory stand-ins for the frame index and the event-loop clock."""
import asyncio
from typing import Dict, List, Optional, Tuple

from frame_explorer.exceptions import FrameApiError
from frame_explorer.models import BoundingBox, FrameMetadata, FrameTag, Tag


class VirtualClock:
    """Replaces asyncio.sleep in the scheduler: records delays, never waits."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)

    @property
    def elapsed(self) -> float:
        return sum(self.delays)


class FakeFrameApi:
    """
    Implements the FrameApiClient surface over plain dictionaries.

    Every call is recorded in `calls` as (method, args). `fail(method, key)`
    makes a method raise FrameApiError, either for every call or only for the
    call whose first argument equals `key` (or whose leading arguments equal a
    tuple `key`).
    """

    image_mime_type = 'image/jpeg'

    def __init__(self):
        self.tags: List[Tag] = []
        self.tag_frames: Dict[int, List[int]] = {}
        self.frames: Dict[int, dict] = {}
        self.albums: Dict[int, Dict[int, List[int]]] = {}
        self.thumbnail_selection: Dict[Tuple[int, int], List[int]] = {}
        self.calls: List[Tuple[str, tuple]] = []
        self._failures: Dict[Tuple[str, Optional[object]], Exception] = {}

    # --- Setup helpers ---

    def add_tag(self, tag_id: int, name: str, frame_ids: List[int], tag_names_per_frame: bool = True) -> None:
        self.tags.append(Tag(id=tag_id, name=name, frame_count=len(frame_ids)))
        self.tag_frames[tag_id] = list(frame_ids)
        for frame_id in frame_ids:
            frame = self.add_frame(frame_id)
            if tag_names_per_frame and (tag_id, name) not in frame['tags']:
                frame['tags'].append((tag_id, name))

    def add_frame(self, frame_id: int, width: int = 640, height: int = 480) -> dict:
        if frame_id not in self.frames:
            self.frames[frame_id] = {
                'width': width,
                'height': height,
                'timestamp': '2024-05-01T10:00:00Z',
                'tags': [],
            }
        return self.frames[frame_id]

    def add_album(self, config_id: int, album_id: int, frame_ids: List[int]) -> None:
        self.albums.setdefault(config_id, {})[album_id] = list(frame_ids)
        for frame_id in frame_ids:
            self.add_frame(frame_id)

    def fail(self, method: str, key: Optional[object] = None, error: Optional[Exception] = None) -> None:
        self._failures[(method, key)] = error or FrameApiError(500, f"{method} failed")

    def calls_to(self, method: str) -> List[tuple]:
        return [args for name, args in self.calls if name == method]

    async def _record(self, method: str, *args) -> None:
        self.calls.append((method, args))
        await asyncio.sleep(0)
        first_arg = args[0] if args else None
        for (name, key), error in self._failures.items():
            if name != method:
                continue
            # A tuple key matches a prefix of the arguments, e.g. (config_id, album_id).
            if key is None or key == first_arg or (isinstance(key, tuple) and args[:len(key)] == key):
                raise error

    # --- Tags ---

    async def list_tags(self) -> List[Tag]:
        await self._record('list_tags')
        return list(self.tags)

    async def resolve_frames(self, tag_ids, confidence_min, confidence_max) -> List[int]:
        await self._record('resolve_frames', tuple(tag_ids), confidence_min, confidence_max)
        # A frame carrying several selected tags shows up once per tag, like the real index.
        result = []
        for tag_id in tag_ids:
            result.extend(self.tag_frames.get(tag_id, []))
        return result

    async def rename_frame_tag(self, frame_id, source_tag_id, new_name) -> None:
        await self._record('rename_frame_tag', frame_id, source_tag_id, new_name)
        frame = self.frames[frame_id]
        frame['tags'] = [(tag_id, new_name if tag_id == source_tag_id else name) for tag_id, name in frame['tags']]

    async def delete_frame_tag(self, frame_id, tag_id) -> None:
        await self._record('delete_frame_tag', frame_id, tag_id)
        frame = self.frames[frame_id]
        frame['tags'] = [(existing_id, name) for existing_id, name in frame['tags'] if existing_id != tag_id]

    # --- Frames ---

    async def get_frame_metadata(self, frame_id) -> FrameMetadata:
        await self._record('get_frame_metadata', frame_id)
        if frame_id not in self.frames:
            raise FrameApiError(404, f"Frame {frame_id} not found")
        frame = self.frames[frame_id]
        return FrameMetadata.from_api_response({
            'Id': frame_id,
            'Width': frame['width'],
            'Height': frame['height'],
            'Timestamp': frame['timestamp'],
            'IsValuable': False,
        })

    async def get_frame_thumbnail(self, frame_id) -> str:
        await self._record('get_frame_thumbnail', frame_id)
        return f"thumb{frame_id}"

    async def get_frame_image(self, frame_id) -> str:
        await self._record('get_frame_image', frame_id)
        return f"full{frame_id}"

    async def get_frame_tags(self, frame_id) -> List[FrameTag]:
        await self._record('get_frame_tags', frame_id)
        frame = self.frames.get(frame_id, {'tags': []})
        return [FrameTag(tag_id=tag_id, tag_name=name, confidence=0.9) for tag_id, name in frame['tags']]

    async def get_bounding_boxes(self, frame_id, tag_id) -> List[BoundingBox]:
        await self._record('get_bounding_boxes', frame_id, tag_id)
        return [BoundingBox(0.1, 0.1, 0.5, 0.5)]

    # --- Configurations and albums ---

    async def list_config_ids(self) -> List[int]:
        await self._record('list_config_ids')
        return sorted(self.albums)

    async def list_album_ids(self, config_id) -> List[int]:
        await self._record('list_album_ids', config_id)
        return list(self.albums.get(config_id, {}))

    async def get_album_frame_ids(self, config_id, album_id, page_size=1000, order='DESC') -> List[int]:
        await self._record('get_album_frame_ids', config_id, album_id, page_size, order)
        return list(self.albums[config_id][album_id])[:page_size]

    async def get_album_frame_count(self, config_id, album_id) -> int:
        await self._record('get_album_frame_count', config_id, album_id)
        return len(self.albums[config_id][album_id])

    async def get_album_thumbnail_frame_ids(self, config_id, album_id, total_frames) -> List[int]:
        await self._record('get_album_thumbnail_frame_ids', config_id, album_id, total_frames)
        selection = self.thumbnail_selection.get((config_id, album_id))
        if selection is not None:
            return list(selection)
        return list(self.albums[config_id][album_id])[:4]
