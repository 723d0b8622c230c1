# frame_explorer/models/dto.py
"""
Data Transfer Objects (DTOs) for type-safe data handling throughout the application.

The remote index speaks PascalCase JSON (`Id`, `KeywordName`, `X1`, ...). These
dataclasses are the only place that knows those field names; everything past
the transport layer works with the snake_case objects defined here.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable
import logging

logger = logging.getLogger(__name__)

# Type aliases for better readability
TagId = int
FrameId = int
ConfigId = int
AlbumId = int

COLLAGE_SIZE = 4


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as sent by the index, tolerating a trailing 'Z'."""
    if isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        logger.warning(f"Could not parse timestamp: {value}")
        return None


def unique_in_order(values: Iterable[Any]) -> list:
    """Drop repeated values, keeping the first occurrence of each."""
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


@dataclass
class Tag:
    """A labeled classification with a server-maintained usage count."""
    id: TagId
    name: str
    frame_count: int = 0
    is_entity: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return asdict(self)

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> Tag:
        """Create a Tag from a `KeywordDto` payload."""
        return cls(
            id=int(data['Id']),
            name=data.get('Name', ''),
            frame_count=int(data.get('Count', 0) or 0),
            is_entity=bool(data.get('IsEntity', False)),
        )


@dataclass
class BoundingBox:
    x1: float
    y1: float
    x2: float
    y2: float

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> BoundingBox:
        return cls(
            x1=float(data.get('X1', 0)),
            y1=float(data.get('Y1', 0)),
            x2=float(data.get('X2', 0)),
            y2=float(data.get('Y2', 0)),
        )


@dataclass
class FrameTag:
    """A single tag annotation on a frame, with its detection confidence and box."""
    tag_id: TagId
    tag_name: str
    confidence: float = 0.0
    bounding_box: Optional[BoundingBox] = None

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> FrameTag:
        """Create a FrameTag from a `FrameKeywordDataDto` payload."""
        box = None
        if any(key in data for key in ('X1', 'X2', 'Y1', 'Y2')):
            box = BoundingBox.from_api_response(data)
        return cls(
            tag_id=int(data.get('KeywordId', 0)),
            tag_name=data.get('KeywordName', ''),
            confidence=float(data.get('Confidence', 0) or 0),
            bounding_box=box,
        )


@dataclass
class FrameMetadata:
    id: FrameId
    width: int = 0
    height: int = 0
    timestamp: Optional[datetime] = None
    is_valuable: bool = False

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> FrameMetadata:
        """Create FrameMetadata from a `FrameMetaDataDto` payload."""
        return cls(
            id=int(data['Id']),
            width=int(data.get('Width', 0) or 0),
            height=int(data.get('Height', 0) or 0),
            timestamp=_parse_timestamp(data.get('Timestamp')),
            is_valuable=bool(data.get('IsValuable', False)),
        )


@dataclass
class Frame:
    """
    A fully hydrated frame as shown in the result list.

    `thumbnail` is a data URI, or an empty string when the thumbnail could not
    be loaded. `full_image` stays None until explicitly requested.
    """
    id: FrameId
    width: int = 0
    height: int = 0
    timestamp: Optional[datetime] = None
    thumbnail: str = ''
    tags: List[str] = field(default_factory=list)
    full_image: Optional[str] = None

    def __post_init__(self) -> None:
        # Tags behave as an ordered set.
        self.tags = unique_in_order(self.tags)

    @property
    def title(self) -> str:
        return f"Frame {self.id}"

    @property
    def has_thumbnail(self) -> bool:
        return bool(self.thumbnail)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return asdict(self)

    @classmethod
    def from_metadata(cls, metadata: FrameMetadata, thumbnail: str = '', tags: Optional[Iterable[str]] = None) -> Frame:
        """Combine the three independent remote reads into one Frame."""
        return cls(
            id=metadata.id,
            width=metadata.width,
            height=metadata.height,
            timestamp=metadata.timestamp,
            thumbnail=thumbnail,
            tags=list(tags or []),
        )


@dataclass
class Configuration:
    """A namespace under which albums are organized."""
    id: ConfigId
    album_ids: List[AlbumId] = field(default_factory=list)

    @property
    def album_count(self) -> int:
        return len(self.album_ids)


@dataclass
class Album:
    """
    A pre-existing album discovered because it holds at least one matching frame.

    Albums are never authored locally; this object only records what the
    matcher learned about one while scanning.
    """
    config_id: ConfigId
    album_id: AlbumId
    frame_count: int = 0
    thumbnails: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    matched_frame_sample: List[FrameId] = field(default_factory=list)
    matched_frame_count: int = 0

    def __post_init__(self) -> None:
        self.thumbnails = list(self.thumbnails)[:COLLAGE_SIZE]
        self.tags = unique_in_order(self.tags)

    @property
    def id(self) -> str:
        """Composite identifier, unique across configurations."""
        return f"{self.config_id}-{self.album_id}"

    @property
    def name(self) -> str:
        return f"Album {self.album_id}"

    @property
    def collage(self) -> List[Optional[str]]:
        """The 2x2 collage cells; cells without a thumbnail are None placeholders."""
        cells: List[Optional[str]] = list(self.thumbnails)
        cells.extend([None] * (COLLAGE_SIZE - len(cells)))
        return cells

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format, including the composite id."""
        data = asdict(self)
        data['id'] = self.id
        return data
