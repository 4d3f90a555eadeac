"""RP2040 64-bit microsecond timer with four alarms, driven by a virtual clock."""

from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Iterable, List, Optional, Tuple

from .irq import IrqLine

NUM_ALARMS = 4
MMIO_SIZE = 0x1000
_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF

logger = logging.getLogger(__name__)


class Register(IntEnum):
    """Register offsets within the timer block."""

    TIMEHW = 0x00
    TIMELW = 0x04
    TIMEHR = 0x08
    TIMELR = 0x0C
    ALARM0 = 0x10
    ALARM1 = 0x14
    ALARM2 = 0x18
    ALARM3 = 0x1C
    ARMED = 0x20
    TIMERAWH = 0x24
    TIMERAWL = 0x28
    DBGPAUSE = 0x2C
    PAUSE = 0x30
    INTR = 0x34
    INTE = 0x38
    INTF = 0x3C
    INTS = 0x40


_ALARM_REGISTERS = (Register.ALARM0, Register.ALARM1, Register.ALARM2, Register.ALARM3)


@dataclass(eq=False)
class ScheduledEvent:
    """A callback waiting on the virtual clock."""

    deadline_us: int
    callback: Callable[[], object]
    cancelled: bool = field(default=False)


class VirtualClock:
    """A microsecond clock that only moves when told to, firing due events."""

    def __init__(self, start_us: int = 0) -> None:
        self._now = start_us
        self._queue: List[Tuple[int, int, ScheduledEvent]] = []
        self._sequence = itertools.count()

    def now_us(self) -> int:
        """Current virtual time in microseconds."""
        return self._now

    def schedule(self, deadline_us: int, callback: Callable[[], object]) -> ScheduledEvent:
        """Run ``callback`` once the clock reaches ``deadline_us``."""
        event = ScheduledEvent(deadline_us, callback)
        heapq.heappush(self._queue, (deadline_us, next(self._sequence), event))
        return event

    def cancel(self, handle: ScheduledEvent) -> None:
        """Prevent a scheduled event from firing."""
        handle.cancelled = True

    def advance(self, us: int) -> None:
        """Move time forward by ``us``, firing due events in deadline order."""
        if us < 0:
            raise ValueError("virtual time cannot move backwards")
        target = self._now + us
        while self._queue and self._queue[0][0] <= target:
            deadline, _, event = heapq.heappop(self._queue)
            if event.cancelled:
                continue
            self._now = max(self._now, deadline)
            event.cancelled = True
            event.callback()
        self._now = target


class Timer:
    """The RP2040 timer: a free-running microsecond counter and four alarms."""

    def __init__(
        self,
        clock: Optional[VirtualClock] = None,
        irqs: Optional[Iterable[IrqLine]] = None,
    ) -> None:
        self.clock = clock if clock is not None else VirtualClock()
        self.irqs = list(irqs) if irqs is not None else [IrqLine() for _ in range(NUM_ALARMS)]
        if len(self.irqs) != NUM_ALARMS:
            raise ValueError(f"timer needs exactly {NUM_ALARMS} interrupt lines")
        self._pending: List[Optional[ScheduledEvent]] = [None] * NUM_ALARMS
        self.reset()

    def reset(self) -> None:
        """Restart the counter from zero and disarm every alarm."""
        self.time_base = self.clock.now_us()
        self.latched_count = 0
        self.armed = 0
        self.dbgpause = 0
        self.pause = 0
        self.intr = 0
        self.inte = 0
        self.intf = 0
        self.alarm = [0] * NUM_ALARMS
        self.alarm_high = [0] * NUM_ALARMS
        for index in range(NUM_ALARMS):
            self._cancel(index)

    def count(self) -> int:
        """The 64-bit microsecond count."""
        return (self.clock.now_us() - self.time_base) & _MASK64

    def _cancel(self, index: int) -> None:
        event = self._pending[index]
        if event is not None:
            self.clock.cancel(event)
            self._pending[index] = None

    def _update_alarm(self, index: int) -> None:
        bit = 1 << index
        self._cancel(index)
        if not self.armed & bit:
            return
        now = self.count()
        alarm_time = (self.alarm_high[index] << 32) | self.alarm[index]
        if alarm_time <= now:
            self.intr |= bit
            self.armed &= ~bit
        else:
            deadline = self.clock.now_us() + (alarm_time - now)
            self._pending[index] = self.clock.schedule(
                deadline, lambda: self._fire(index)
            )

    def _fire(self, index: int) -> None:
        bit = 1 << index
        self._pending[index] = None
        self.intr |= bit
        self.armed &= ~bit
        if self.inte & bit:
            self.irqs[index].set(True)

    def read(self, offset: int) -> int:
        """Read the register at ``offset``; unknown offsets read as zero."""
        if offset == Register.TIMEHW:
            self.latched_count = self.count()
            return self.latched_count >> 32
        if offset == Register.TIMELW:
            return self.latched_count & _MASK32
        if offset in (Register.TIMEHR, Register.TIMERAWH):
            return self.count() >> 32
        if offset in (Register.TIMELR, Register.TIMERAWL):
            return self.count() & _MASK32
        if offset in _ALARM_REGISTERS:
            return self.alarm[_ALARM_REGISTERS.index(offset)]
        simple = {
            Register.ARMED: self.armed,
            Register.DBGPAUSE: self.dbgpause,
            Register.PAUSE: self.pause,
            Register.INTR: self.intr,
            Register.INTE: self.inte,
            Register.INTF: self.intf,
            Register.INTS: self.intr & self.inte,
        }
        if offset in simple:
            return simple[offset]
        logger.warning("rp2040_timer: bad read offset 0x%x", offset)
        return 0

    def write(self, offset: int, value: int) -> None:
        """Write ``value`` to the register at ``offset``."""
        value &= _MASK32
        if offset == Register.TIMELW:
            self.time_base = (self.clock.now_us() - value) & _MASK64
            for index in range(NUM_ALARMS):
                self._update_alarm(index)
        elif offset in _ALARM_REGISTERS:
            index = _ALARM_REGISTERS.index(offset)
            self.alarm[index] = value
            self.alarm_high[index] = self.count() >> 32
            self.armed |= 1 << index
            self._update_alarm(index)
        elif offset == Register.ARMED:
            self.armed &= ~value
            for index in range(NUM_ALARMS):
                if value & (1 << index):
                    self._cancel(index)
        elif offset == Register.DBGPAUSE:
            self.dbgpause = value & 0x3
        elif offset == Register.PAUSE:
            self.pause = value & 0x1
        elif offset == Register.INTR:
            self.intr &= ~value
            for index, line in enumerate(self.irqs):
                if value & (1 << index):
                    line.set(False)
        elif offset == Register.INTE:
            self.inte = value & 0xF
        elif offset == Register.INTF:
            self.intf = value & 0xF
        else:
            logger.warning("rp2040_timer: bad write offset 0x%x", offset)