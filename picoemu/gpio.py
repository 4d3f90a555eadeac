"""RP2040 IO bank 0: per-pin status/control and GPIO interrupt routing."""

from __future__ import annotations

import logging
from enum import IntEnum, IntFlag
from typing import List, Optional

from .irq import IrqLine

NUM_PINS = 30
NUM_INT_REGS = 4
PINS_PER_INT_REG = 8
MMIO_SIZE = 0x1000
STATUS_INPUT_BIT = 17
CTRL_IRQ_SHIFT = 28
_FUNCSEL_MASK = 0x1F
_MASK32 = 0xFFFFFFFF

logger = logging.getLogger(__name__)


class Register(IntEnum):
    """Offsets of the interrupt registers (per-pin registers start at 0)."""

    INTR0 = 0x0F0
    PROC0_INTE0 = 0x100
    PROC0_INTF0 = 0x110
    PROC0_INTS0 = 0x120
    PROC1_INTE0 = 0x130
    PROC1_INTF0 = 0x140
    PROC1_INTS0 = 0x150
    DORMANT_WAKE_INTE0 = 0x160
    DORMANT_WAKE_INTF0 = 0x170
    DORMANT_WAKE_INTS0 = 0x180


class FuncSel(IntEnum):
    """Function select values of a pin's CTRL register."""

    SPI = 1
    UART = 2
    I2C = 3
    PWM = 4
    SIO = 5
    PIO0 = 6
    PIO1 = 7
    USB = 9
    NULL = 31


class IntType(IntFlag):
    """The four interrupt conditions of a pin."""

    LEVEL_LOW = 1 << 0
    LEVEL_HIGH = 1 << 1
    EDGE_LOW = 1 << 2
    EDGE_HIGH = 1 << 3


def status_offset(pin: int) -> int:
    """Offset of the STATUS register of ``pin``."""
    return pin * 8


def ctrl_offset(pin: int) -> int:
    """Offset of the CTRL register of ``pin``."""
    return 0x004 + pin * 8


def _pin_slot(pin: int) -> tuple:
    """Interrupt register index and bit shift of the nibble belonging to ``pin``."""
    return pin // PINS_PER_INT_REG, (pin % PINS_PER_INT_REG) * 4


# Register banks that are plain stored arrays, keyed by their first offset.
_BANKS = {
    Register.INTR0: "intr",
    Register.PROC0_INTE0: "proc0_inte",
    Register.PROC0_INTF0: "proc0_intf",
    Register.PROC1_INTE0: "proc1_inte",
    Register.PROC1_INTF0: "proc1_intf",
}

# Status registers computed as intr & enable.
_STATUS_BANKS = {
    Register.PROC0_INTS0: "proc0_inte",
    Register.PROC1_INTS0: "proc1_inte",
}


def _bank_of(offset: int, bases) -> Optional[tuple]:
    for base, name in bases.items():
        delta = offset - base
        if 0 <= delta < NUM_INT_REGS * 4 and delta % 4 == 0:
            return base, name, delta // 4
    return None


class Gpio:
    """The GPIO pin controller, with one interrupt line per core."""

    def __init__(
        self,
        proc0_irq: Optional[IrqLine] = None,
        proc1_irq: Optional[IrqLine] = None,
    ) -> None:
        self.proc0_irq = proc0_irq if proc0_irq is not None else IrqLine()
        self.proc1_irq = proc1_irq if proc1_irq is not None else IrqLine()
        self.reset()

    def reset(self) -> None:
        """Clear interrupt state and set every pin to the NULL function."""
        self.status: List[int] = [int(FuncSel.NULL)] * NUM_PINS
        self.ctrl: List[int] = [int(FuncSel.NULL)] * NUM_PINS
        self.intr: List[int] = [0] * NUM_INT_REGS
        self.proc0_inte: List[int] = [0] * NUM_INT_REGS
        self.proc0_intf: List[int] = [0] * NUM_INT_REGS
        self.proc1_inte: List[int] = [0] * NUM_INT_REGS
        self.proc1_intf: List[int] = [0] * NUM_INT_REGS

    def _update_irq(self) -> None:
        def asserted(enable: List[int]) -> bool:
            for pin in range(NUM_PINS):
                reg, shift = _pin_slot(pin)
                nibble = 0xF << shift
                if self.intr[reg] & nibble and enable[reg] & nibble:
                    return True
            return False

        self.proc0_irq.set(asserted(self.proc0_inte))
        self.proc1_irq.set(asserted(self.proc1_inte))

    def read(self, offset: int) -> int:
        """Read the register at ``offset``; unknown offsets read as zero."""
        if offset < Register.INTR0:
            pin = offset // 8
            if pin >= NUM_PINS:
                return 0
            return self.status[pin] if offset & 7 == 0 else self.ctrl[pin]
        found = _bank_of(offset, _BANKS)
        if found is not None:
            _, name, index = found
            return getattr(self, name)[index]
        found = _bank_of(offset, _STATUS_BANKS)
        if found is not None:
            _, name, index = found
            return self.intr[index] & getattr(self, name)[index]
        logger.warning("rp2040_gpio: bad read offset 0x%x", offset)
        return 0

    def write(self, offset: int, value: int) -> None:
        """Write ``value`` to the register at ``offset``."""
        value &= _MASK32
        if offset < Register.INTR0:
            pin = offset // 8
            if pin >= NUM_PINS or offset & 7 == 0:
                return  # STATUS is read only
            self.ctrl[pin] = value
            funcsel = value & _FUNCSEL_MASK
            if funcsel == FuncSel.SIO:
                self.status[pin] = (self.status[pin] & ~_FUNCSEL_MASK) | funcsel
            return
        found = _bank_of(offset, _BANKS)
        if found is None:
            logger.warning("rp2040_gpio: bad write offset 0x%x", offset)
            return
        base, name, index = found
        if base == Register.INTR0:
            self.intr[index] &= ~value
            self._update_irq()
        else:
            getattr(self, name)[index] = value
            if base in (Register.PROC0_INTE0, Register.PROC1_INTE0):
                self._update_irq()

    def set_input(self, pin: int, level) -> None:
        """Drive the input level of ``pin`` and latch any interrupt it raises."""
        if not 0 <= pin < NUM_PINS:
            return
        level = bool(level)
        old_level = bool((self.status[pin] >> STATUS_INPUT_BIT) & 1)
        if level:
            self.status[pin] |= 1 << STATUS_INPUT_BIT
        else:
            self.status[pin] &= ~(1 << STATUS_INPUT_BIT)

        if self.ctrl[pin] & _FUNCSEL_MASK != FuncSel.SIO:
            return
        mask = IntType((self.ctrl[pin] >> CTRL_IRQ_SHIFT) & 0xF)
        raised = IntType(0)
        if mask & IntType.LEVEL_LOW and not level:
            raised |= IntType.LEVEL_LOW
        if mask & IntType.LEVEL_HIGH and level:
            raised |= IntType.LEVEL_HIGH
        if mask & IntType.EDGE_LOW and old_level and not level:
            raised |= IntType.EDGE_LOW
        if mask & IntType.EDGE_HIGH and not old_level and level:
            raised |= IntType.EDGE_HIGH
        if raised:
            reg, shift = _pin_slot(pin)
            self.intr[reg] |= int(raised) << shift
            self._update_irq()