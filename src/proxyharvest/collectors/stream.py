from __future__ import annotations

import queue
import threading
from typing import Generic, Iterator, List, TypeVar

T = TypeVar("T")

_CLOSED = object()


class StreamClosedError(RuntimeError):
    pass


class RecordStream(Generic[T]):
    """
    One-shot producer/consumer stream.

    The producer puts items and closes the stream exactly once; a consumer
    iterates until the close marker arrives. Iteration is single-pass.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._q: "queue.Queue[object]" = queue.Queue(maxsize=max(0, int(maxsize)))
        self._lock = threading.Lock()
        self._closed = False
        self._drained = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def put(self, item: T) -> None:
        with self._lock:
            if self._closed:
                raise StreamClosedError("put on closed stream")
        self._q.put(item)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                raise StreamClosedError("stream already closed")
            self._closed = True
        self._q.put(_CLOSED)

    def __iter__(self) -> Iterator[T]:
        while not self._drained:
            item = self._q.get()
            if item is _CLOSED:
                self._drained = True
                return
            yield item  # type: ignore[misc]

    def drain(self) -> List[T]:
        return list(self)
