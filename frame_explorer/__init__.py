"""Frame Explorer: progressive tag search and album discovery over a remote frame index."""

__version__ = "0.1.0"
