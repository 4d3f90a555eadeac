"""Interrupt lines that connect peripherals to interrupt controllers."""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

IrqHandler = Callable[[bool], None]


class IrqLine:
    """A single interrupt line whose level is pushed to connected handlers."""

    def __init__(self, handler: Optional[IrqHandler] = None) -> None:
        self.level = False
        self._handlers: List[IrqHandler] = []
        if handler is not None:
            self.connect(handler)

    def connect(self, handler: IrqHandler) -> None:
        """Attach a handler that is called with the new level on every set."""
        self._handlers.append(handler)

    def set(self, level) -> None:
        """Drive the line to ``level`` (any truthy value means asserted)."""
        self.level = bool(level)
        for handler in self._handlers:
            handler(self.level)

    def __repr__(self) -> str:
        return f"IrqLine(level={self.level})"


def update_irqs(lines: Iterable[IrqLine], status: int, enable: int) -> None:
    """Drive line ``i`` high when bit ``i`` is set in both ``status`` and ``enable``."""
    pending = status & enable
    for bit, line in enumerate(lines):
        line.set(pending & (1 << bit))