# frame_explorer/session_state.py
"""
Per-query state for a tag search.

A `SearchSession` owns the two result lists a search fills in (frames and
albums) and the notifications raised while filling them. Each list carries a
generation counter: `start_cycle()` bumps it and clears the list, and every
write goes through a `CycleWriter` bound to the generation it was issued for.
Once a newer cycle starts, writers from older cycles become inert, so a
superseded background load can never leak results into the new one.
"""
from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, Generic, Hashable, List, Literal, Optional, Sequence, TypeVar
import logging

from .models import Album, Frame

logger = logging.getLogger(__name__)

T = TypeVar('T')

NotificationLevel = Literal["info", "warning", "error"]


class LoadState(str, Enum):
    IDLE = "idle"
    FIRST_PAGE_LOADING = "first_page_loading"
    FIRST_PAGE_VISIBLE = "first_page_visible"
    ALL_AT_ONCE_LOADING = "all_at_once_loading"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class Notification:
    """A one-shot, user-facing message (the CLI prints these; a UI would toast them)."""
    title: str
    message: str
    level: NotificationLevel = "info"
    created_at: datetime = field(default_factory=datetime.now)


class ResultList(Generic[T]):
    """
    An ordered, duplicate-free list of results plus its load state.

    Items are keyed by `key(item)`; a commit appends only items whose key is not
    yet present, in one step, so observers never see half a batch.
    """

    def __init__(self, name: str, key: Callable[[T], Hashable] = lambda item: item.id):
        self.name = name
        self._key = key
        self._items: List[T] = []
        self._keys: set = set()
        self.generation = 0
        self.state = LoadState.IDLE
        self.error: Optional[str] = None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    @property
    def items(self) -> List[T]:
        """A snapshot copy of the visible items."""
        return list(self._items)

    @property
    def ids(self) -> List[Hashable]:
        return [self._key(item) for item in self._items]

    @property
    def loading(self) -> bool:
        """True while the synchronous part of a cycle is running."""
        return self.state in (LoadState.FIRST_PAGE_LOADING, LoadState.ALL_AT_ONCE_LOADING)

    @property
    def background_loading(self) -> bool:
        return self.state == LoadState.FIRST_PAGE_VISIBLE

    def get(self, key: Hashable) -> Optional[T]:
        for item in self._items:
            if self._key(item) == key:
                return item
        return None

    def start_cycle(self) -> 'CycleWriter[T]':
        """Discards the current contents and returns the writer for a new cycle."""
        self.generation += 1
        self._items = []
        self._keys = set()
        self.state = LoadState.IDLE
        self.error = None
        logger.debug(f"{self.name}: started cycle {self.generation}")
        return CycleWriter(self, self.generation)

    def reset(self) -> None:
        """Clears the list and invalidates any in-flight writer."""
        self.start_cycle()

    def _commit(self, generation: int, items: Sequence[T]) -> Optional[List[T]]:
        if generation != self.generation:
            logger.info(f"{self.name}: dropped {len(items)} item(s) from superseded cycle {generation} (current: {self.generation})")
            return None
        added = []
        for item in items:
            item_key = self._key(item)
            if item_key in self._keys:
                continue
            self._keys.add(item_key)
            added.append(item)
        self._items.extend(added)
        return added


class CycleWriter(Generic[T]):
    """The write handle for one cycle of a `ResultList`."""

    def __init__(self, results: ResultList[T], generation: int):
        self.results = results
        self.generation = generation

    @property
    def active(self) -> bool:
        """False once a newer cycle has started on the same list."""
        return self.results.generation == self.generation

    def commit(self, items: Sequence[T]) -> Optional[List[T]]:
        """
        Appends the items not already visible, atomically.

        Returns:
            The items actually added, or None if this writer has been superseded.
        """
        return self.results._commit(self.generation, items)

    def set_state(self, state: LoadState) -> bool:
        if not self.active:
            return False
        logger.debug(f"{self.results.name}: {self.results.state.value} -> {state.value}")
        self.results.state = state
        return True

    def fail(self, message: str) -> bool:
        """Clears the visible results and records the error. Ignored when superseded."""
        if not self.active:
            return False
        self.results._items = []
        self.results._keys = set()
        self.results.state = LoadState.FAILED
        self.results.error = message
        return True


class SearchSession:
    """
    Centralized state for one search surface: selected tags, resolved frame IDs,
    the frame and album result lists, and pending notifications.
    """

    def __init__(self):
        self.frames: ResultList[Frame] = ResultList("frames")
        self.albums: ResultList[Album] = ResultList("albums")
        self.selected_tag_ids: List[int] = []
        self.resolved_frame_ids: List[int] = []
        self._notifications: Deque[Notification] = deque()

    # --- Cycle Management ---

    def start_frame_cycle(self) -> CycleWriter[Frame]:
        return self.frames.start_cycle()

    def start_album_cycle(self) -> CycleWriter[Album]:
        return self.albums.start_cycle()

    def fail_cycle(self, writer: CycleWriter, error: Exception, fallback: str, notify: bool = True) -> bool:
        """
        Moves a cycle to FAILED, clearing its list, and queues one error notification.

        Does nothing if the cycle has already been superseded.
        """
        message = str(error) or fallback
        logger.error(f"{writer.results.name}: cycle {writer.generation} failed: {message}", exc_info=error)
        if not writer.fail(message):
            return False
        if notify:
            self.notify("Error", message, level="error")
        return True

    def reset(self) -> None:
        """Drops all results and invalidates every in-flight cycle."""
        logger.debug("Resetting search session")
        self.frames.reset()
        self.albums.reset()
        self.selected_tag_ids = []
        self.resolved_frame_ids = []
        self._notifications.clear()

    # --- Notifications ---

    def notify(self, title: str, message: str, level: NotificationLevel = "info") -> Notification:
        notification = Notification(title=title, message=message, level=level)
        self._notifications.append(notification)
        return notification

    def drain_notifications(self) -> List[Notification]:
        """Returns and clears the pending notifications; each is delivered once."""
        pending = list(self._notifications)
        self._notifications.clear()
        return pending

    @property
    def pending_notifications(self) -> int:
        return len(self._notifications)

    # --- Convenience Properties ---

    @property
    def loading(self) -> bool:
        return self.frames.loading or self.albums.loading

    @property
    def background_loading(self) -> bool:
        return self.frames.background_loading or self.albums.background_loading

    # --- Utility Methods ---

    def get_session_info(self) -> Dict[str, Any]:
        """Get a summary of current session state for debugging."""
        return {
            "selected_tag_ids": list(self.selected_tag_ids),
            "resolved_frames": len(self.resolved_frame_ids),
            "frames": {
                "visible": len(self.frames),
                "state": self.frames.state.value,
                "generation": self.frames.generation,
                "error": self.frames.error,
            },
            "albums": {
                "visible": len(self.albums),
                "state": self.albums.state.value,
                "generation": self.albums.generation,
                "error": self.albums.error,
            },
            "pending_notifications": self.pending_notifications,
        }
