"""Port for the durable key-value slot backing the mutation log."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class DurableSlot(Protocol):
    """One named slot read and written as a whole value.

    Implementations raise ``StorageUnavailableError`` when the backing store fails.
    """

    def read(self) -> str | None: ...

    def write(self, value: str) -> None: ...

    def clear(self) -> None: ...
