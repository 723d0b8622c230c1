# frame_explorer/exceptions.py
"""
Defines custom, application-specific exceptions for clear error handling.

Pipeline stages catch these to tell a failure that should end the whole
resolve-and-hydrate cycle apart from one that only drops a single frame or
album.
"""

class AppServiceError(Exception):
    """Base exception for all service-related errors in the application."""
    pass

class ConfigError(AppServiceError):
    """Raised when the configuration is missing a required value or is malformed."""
    pass

# --- Frame Index Exceptions ---
class FrameServiceError(AppServiceError):
    """Base exception for errors related to the remote frame index."""
    pass

class FrameApiError(FrameServiceError):
    """
    Raised for failures when interacting with the frame index REST API.

    `status` is the HTTP status code, or 0 when the request never produced a
    response (connection refused, timeout, DNS failure).
    """

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        return self.message

class FrameIndexError(FrameServiceError):
    """Raised when a set of tag IDs cannot be resolved to frame IDs."""
    pass

class FrameFetchError(FrameServiceError):
    """Raised when a single frame's detail or image cannot be loaded."""
    pass

class AlbumDiscoveryError(FrameServiceError):
    """Raised when configurations or albums cannot be enumerated."""
    pass
