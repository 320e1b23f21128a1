from collections import deque
from itertools import islice
from typing import Deque, Generic, Iterator, List, Optional, TypeVar

T = TypeVar("T")

DEFAULT_CAPACITY = 50


class HistoryView(Generic[T]):
    """Read-only window over the newest ``n`` items of a HistoryBuffer.

    Iterating walks the underlying buffer each time, so the view can be
    consumed more than once and never copies or mutates the buffer.
    """

    def __init__(self, buffer: "HistoryBuffer[T]", n: int):
        self._buffer = buffer
        self._n = max(0, n)

    def __len__(self) -> int:
        return min(self._n, len(self._buffer))

    def __iter__(self) -> Iterator[T]:
        skip = len(self._buffer) - len(self)
        return islice(iter(self._buffer), skip, None)


class HistoryBuffer(Generic[T]):
    """Bounded FIFO of samples in arrival order, oldest first."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._items: Deque[T] = deque(maxlen=capacity)

    def append(self, sample: T) -> "HistoryBuffer[T]":
        # deque(maxlen) evicts from the front once full
        self._items.append(sample)
        return self

    def slice_last(self, n: int) -> HistoryView[T]:
        return HistoryView(self, n)

    @property
    def latest(self) -> Optional[T]:
        return self._items[-1] if self._items else None

    def to_list(self) -> List[T]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)
