"""RP2040 single-cycle I/O block: GPIO mirror, inter-core FIFOs and spinlocks."""

from __future__ import annotations

import logging
from collections import deque
from enum import IntEnum, IntFlag
from typing import Callable, Deque, List, Optional

NUM_CORES = 2
NUM_SPINLOCKS = 32
FIFO_DEPTH = 8
GPIO_PIN_MASK = (1 << 30) - 1
MMIO_SIZE = 0x1000
_MASK32 = 0xFFFFFFFF

logger = logging.getLogger(__name__)


class Register(IntEnum):
    """Register offsets within the SIO block."""

    CPUID = 0x000
    GPIO_IN = 0x004
    GPIO_HI_IN = 0x008
    GPIO_OUT = 0x010
    GPIO_OUT_SET = 0x014
    GPIO_OUT_CLR = 0x018
    GPIO_OUT_XOR = 0x01C
    GPIO_OE = 0x020
    GPIO_OE_SET = 0x024
    GPIO_OE_CLR = 0x028
    GPIO_OE_XOR = 0x02C
    FIFO_ST = 0x050
    FIFO_WR = 0x054
    FIFO_RD = 0x058
    SPINLOCK0 = 0x100


class FifoStatus(IntFlag):
    """Bits of the FIFO status register."""

    VLD = 1 << 0
    RDY = 1 << 1
    WOF = 1 << 2
    ROE = 1 << 3


def _apply(current: int, offset: int, base: int, value: int) -> int:
    """Apply a plain/set/clear/xor register write at ``offset`` relative to ``base``."""
    kind = offset - base
    if kind == 0:
        result = value
    elif kind == 4:
        result = current | value
    elif kind == 8:
        result = current & ~value
    else:
        result = current ^ value
    return result & GPIO_PIN_MASK


class Fifo:
    """A bounded first-in first-out queue of 32-bit words."""

    def __init__(self, depth: int = FIFO_DEPTH) -> None:
        self.depth = depth
        self._data: Deque[int] = deque()

    def is_full(self) -> bool:
        return len(self._data) >= self.depth

    def is_empty(self) -> bool:
        return not self._data

    def push(self, value: int) -> bool:
        """Append ``value``; return False and drop it when the FIFO is full."""
        if self.is_full():
            return False
        self._data.append(value & _MASK32)
        return True

    def pop(self) -> int:
        """Remove and return the oldest word, or 0 when the FIFO is empty."""
        return self._data.popleft() if self._data else 0

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class Sio:
    """Single-cycle I/O as seen from either core.

    ``fifos[n]`` carries words written by core ``n`` to the other core.
    ``gpio_in`` holds the levels driven onto pins from outside; ``on_change``
    is called with ``(gpio_out, gpio_oe)`` whenever either changes.
    """

    def __init__(self, on_change: Optional[Callable[[int, int], object]] = None) -> None:
        self.on_change = on_change
        self.fifos: List[Fifo] = [Fifo() for _ in range(NUM_CORES)]
        self.reset()

    def reset(self) -> None:
        """Clear GPIO outputs, FIFOs, error flags and spinlocks."""
        self.gpio_out = 0
        self.gpio_oe = 0
        self.gpio_in = 0
        self.gpio_hi_in = 0
        for fifo in self.fifos:
            fifo.clear()
        self.fifo_errors = [0] * NUM_CORES
        self.spinlocks = [False] * NUM_SPINLOCKS

    @staticmethod
    def _check_cpu(cpu: int) -> None:
        if cpu not in range(NUM_CORES):
            raise ValueError(f"no such core: {cpu}")

    def _pins(self) -> int:
        driven = self.gpio_out & self.gpio_oe
        return ((self.gpio_in & ~self.gpio_oe) | driven) & GPIO_PIN_MASK

    def _fifo_status(self, cpu: int) -> int:
        status = FifoStatus(self.fifo_errors[cpu])
        if not self.fifos[1 - cpu].is_empty():
            status |= FifoStatus.VLD
        if not self.fifos[cpu].is_full():
            status |= FifoStatus.RDY
        return int(status)

    def _spinlock_index(self, offset: int) -> Optional[int]:
        index = (offset - Register.SPINLOCK0) // 4
        return index if 0 <= index < NUM_SPINLOCKS else None

    def read(self, offset: int, cpu: int = 0) -> int:
        """Read the register at ``offset`` on behalf of core ``cpu``."""
        self._check_cpu(cpu)
        if offset & 3:
            logger.warning("rp2040_sio: unaligned read at offset 0x%x", offset)
            return 0
        if offset == Register.CPUID:
            return cpu
        if offset == Register.GPIO_IN:
            return self._pins()
        if offset == Register.GPIO_HI_IN:
            return self.gpio_hi_in
        if offset == Register.GPIO_OUT:
            return self.gpio_out
        if offset == Register.GPIO_OE:
            return self.gpio_oe
        if offset == Register.FIFO_ST:
            return self._fifo_status(cpu)
        if offset == Register.FIFO_RD:
            incoming = self.fifos[1 - cpu]
            if incoming.is_empty():
                self.fifo_errors[cpu] |= FifoStatus.ROE
                return 0
            return incoming.pop()
        index = self._spinlock_index(offset)
        if index is not None:
            if self.spinlocks[index]:
                return 0
            self.spinlocks[index] = True
            return 1 << index
        logger.warning("rp2040_sio: bad read offset 0x%x", offset)
        return 0

    def write(self, offset: int, value: int, cpu: int = 0) -> None:
        """Write ``value`` to the register at ``offset`` on behalf of core ``cpu``."""
        self._check_cpu(cpu)
        value &= _MASK32
        if offset & 3:
            logger.warning("rp2040_sio: unaligned write at offset 0x%x", offset)
            return
        if Register.GPIO_OUT <= offset <= Register.GPIO_OUT_XOR:
            self.gpio_out = _apply(self.gpio_out, offset, Register.GPIO_OUT, value)
            self._notify()
        elif Register.GPIO_OE <= offset <= Register.GPIO_OE_XOR:
            self.gpio_oe = _apply(self.gpio_oe, offset, Register.GPIO_OE, value)
            self._notify()
        elif offset == Register.FIFO_ST:
            self.fifo_errors[cpu] = 0
        elif offset == Register.FIFO_WR:
            if not self.fifos[cpu].push(value):
                self.fifo_errors[cpu] |= FifoStatus.WOF
        else:
            index = self._spinlock_index(offset)
            if index is not None:
                self.spinlocks[index] = False
            else:
                logger.warning("rp2040_sio: bad write offset 0x%x", offset)

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.gpio_out, self.gpio_oe)