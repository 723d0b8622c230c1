# frame_explorer/models/__init__.py
"""
Models package for Frame Explorer.

This package contains all data model definitions and DTOs for type-safe
data handling throughout the application.
"""

from .dto import (
    # Core DTOs
    Tag,
    BoundingBox,
    FrameTag,
    FrameMetadata,
    Frame,
    Configuration,
    Album,

    # Type aliases
    TagId,
    FrameId,
    ConfigId,
    AlbumId,

    # Constants and helpers
    COLLAGE_SIZE,
    unique_in_order,
)

__all__ = [
    # Core DTOs
    'Tag',
    'BoundingBox',
    'FrameTag',
    'FrameMetadata',
    'Frame',
    'Configuration',
    'Album',

    # Type aliases
    'TagId',
    'FrameId',
    'ConfigId',
    'AlbumId',

    # Constants and helpers
    'COLLAGE_SIZE',
    'unique_in_order',
]
