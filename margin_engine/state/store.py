"""
Accounting state store.

A keyed mapping from opaque ledger keys (see `keys.py`) to signed Python ints,
plus the position records keyed by their derived position key.

Capabilities are split so each component receives only what it needs:
- `ReadableStore`: ``get`` / ``get_position``.
- `WritableStore`: adds ``set`` / ``apply_delta`` / ``set_position`` / ``remove_position``.

`StoreTransaction` buffers writes (and emitted events) over a parent store and
flushes them in one ``commit()``; ``discard()`` drops everything, which is how
an aborted position update leaves no partial state behind.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional, Protocol

from ..errors import LedgerUnderflowError

if TYPE_CHECKING:
    from ..core.position.events import EventRecord
    from ..core.position.types import Position


def _check_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise TypeError("store keys must be non-empty str")


def _check_value(key: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"value for {key} must be an int, got {type(value).__name__}")


class ReadableStore(Protocol):
    def get(self, key: str) -> int: ...

    def get_position(self, key: str) -> Optional[Position]: ...


class WritableStore(ReadableStore, Protocol):
    def set(self, key: str, value: int) -> None: ...

    def apply_delta(self, key: str, delta: int, *, allow_negative: bool = False) -> int: ...

    def set_position(self, key: str, position: Position) -> None: ...

    def remove_position(self, key: str) -> None: ...


class _LedgerOps:
    """``apply_delta`` in terms of ``get`` / ``set``."""

    def get(self, key: str) -> int:  # pragma: no cover - overridden
        raise NotImplementedError

    def set(self, key: str, value: int) -> None:  # pragma: no cover - overridden
        raise NotImplementedError

    def apply_delta(self, key: str, delta: int, *, allow_negative: bool = False) -> int:
        """
        Add *delta* to the value at *key* and return the new value.

        Raises:
            LedgerUnderflowError: If the result is negative and ``allow_negative`` is False.
        """
        _check_value(key, delta)
        current = self.get(key)
        next_value = current + delta
        if next_value < 0 and not allow_negative:
            raise LedgerUnderflowError(key, current, delta)
        self.set(key, next_value)
        return next_value


class DataStore(_LedgerOps):
    """
    In-memory accounting store.

    Missing keys read as 0 and zero values are dropped to keep the table sparse.
    Do not rely on dict iteration order; `snapshot()` returns a sorted copy.
    """

    def __init__(self) -> None:
        self._values: Dict[str, int] = {}
        self._positions: Dict[str, Position] = {}

    def get(self, key: str) -> int:
        _check_key(key)
        return self._values.get(key, 0)

    def set(self, key: str, value: int) -> None:
        _check_key(key)
        _check_value(key, value)
        if value == 0:
            self._values.pop(key, None)
        else:
            self._values[key] = value

    def get_position(self, key: str) -> Optional[Position]:
        _check_key(key)
        return self._positions.get(key)

    def set_position(self, key: str, position: Position) -> None:
        _check_key(key)
        self._positions[key] = position

    def remove_position(self, key: str) -> None:
        _check_key(key)
        self._positions.pop(key, None)

    def position_keys(self) -> List[str]:
        return sorted(self._positions)

    def snapshot(self) -> Dict[str, int]:
        """Sorted copy of every non-zero value."""
        return {k: self._values[k] for k in sorted(self._values)}


class ReadOnlyStore:
    """Read-only view over another store."""

    def __init__(self, store: ReadableStore) -> None:
        self._store = store

    def get(self, key: str) -> int:
        return self._store.get(key)

    def get_position(self, key: str) -> Optional[Position]:
        return self._store.get_position(key)


_REMOVED = object()


class StoreTransaction(_LedgerOps):
    """
    Write buffer over a parent store.

    Reads fall through to the parent for keys not written in this transaction.
    The transaction also acts as an event sink: events are held until commit so
    an aborted operation emits nothing. Transactions nest (the parent may be
    another transaction).
    """

    def __init__(self, parent: WritableStore) -> None:
        self._parent = parent
        self._values: Dict[str, int] = {}
        self._positions: Dict[str, object] = {}
        self._events: List[EventRecord] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("transaction already committed or discarded")

    def get(self, key: str) -> int:
        _check_key(key)
        if key in self._values:
            return self._values[key]
        return self._parent.get(key)

    def set(self, key: str, value: int) -> None:
        self._check_open()
        _check_key(key)
        _check_value(key, value)
        self._values[key] = value

    def get_position(self, key: str) -> Optional[Position]:
        _check_key(key)
        if key in self._positions:
            buffered = self._positions[key]
            return None if buffered is _REMOVED else buffered  # type: ignore[return-value]
        return self._parent.get_position(key)

    def set_position(self, key: str, position: Position) -> None:
        self._check_open()
        _check_key(key)
        self._positions[key] = position

    def remove_position(self, key: str) -> None:
        self._check_open()
        _check_key(key)
        self._positions[key] = _REMOVED

    def emit(self, event: EventRecord) -> None:
        self._check_open()
        self._events.append(event)

    @property
    def pending_events(self) -> List[EventRecord]:
        return list(self._events)

    def commit(self) -> List[EventRecord]:
        """Flush buffered writes to the parent and return the buffered events."""
        self._check_open()
        for key in sorted(self._values):
            self._parent.set(key, self._values[key])
        for key in sorted(self._positions):
            buffered = self._positions[key]
            if buffered is _REMOVED:
                self._parent.remove_position(key)
            else:
                self._parent.set_position(key, buffered)  # type: ignore[arg-type]
        events = list(self._events)
        if isinstance(self._parent, StoreTransaction):
            for event in events:
                self._parent.emit(event)
        self._closed = True
        return events

    def discard(self) -> None:
        """Drop every buffered write and event."""
        self._values.clear()
        self._positions.clear()
        self._events.clear()
        self._closed = True
