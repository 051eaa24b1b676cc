"""Single-slot mailbox for live streaming output."""

from __future__ import annotations

from collections.abc import Callable


class LiveSlot:
    """Holds the latest text only; each write replaces the previous one.

    ``on_write`` (if given) is called synchronously with every new value, which is
    how a UI surface such as a status bar or input box follows the stream.
    """

    def __init__(self, on_write: Callable[[str], None] | None = None) -> None:
        self._value: str | None = None
        self._on_write = on_write
        self.writes = 0

    def put(self, text: str) -> None:
        self._value = text
        self.writes += 1
        if self._on_write is not None:
            self._on_write(text)

    def peek(self) -> str | None:
        return self._value

    def take(self) -> str | None:
        """Return the current value and empty the slot."""
        value, self._value = self._value, None
        return value

    def __repr__(self) -> str:
        return f"LiveSlot(value={self._value!r}, writes={self.writes})"
