"""RP2040 UART register model (PL011 compatible)."""

from __future__ import annotations

import logging
from collections import deque
from enum import IntEnum, IntFlag
from typing import Callable, Deque, Optional

from .irq import IrqLine

FIFO_SIZE = 32
MMIO_SIZE = 0x1000
_MASK32 = 0xFFFFFFFF

logger = logging.getLogger(__name__)


class Register(IntEnum):
    """Register offsets within the UART block."""

    DR = 0x000
    RSR = 0x004
    ECR = 0x004  # write view of RSR
    FR = 0x018
    ILPR = 0x020
    IBRD = 0x024
    FBRD = 0x028
    LCR_H = 0x02C
    CR = 0x030
    IFLS = 0x034
    IMSC = 0x038
    RIS = 0x03C
    MIS = 0x040
    ICR = 0x044
    DMACR = 0x048


class Flag(IntFlag):
    """Bits of the flag register."""

    CTS = 1 << 0
    DSR = 1 << 1
    DCD = 1 << 2
    BUSY = 1 << 3
    RXFE = 1 << 4
    TXFF = 1 << 5
    RXFF = 1 << 6
    TXFE = 1 << 7
    RI = 1 << 8


class Control(IntFlag):
    """Bits of the control register."""

    UARTEN = 1 << 0
    SIREN = 1 << 1
    SIRLP = 1 << 2
    LBE = 1 << 7
    TXE = 1 << 8
    RXE = 1 << 9
    DTR = 1 << 10
    RTS = 1 << 11
    OUT1 = 1 << 12
    OUT2 = 1 << 13
    RTSEN = 1 << 14
    CTSEN = 1 << 15


class Interrupt(IntFlag):
    """Interrupt status and mask bits."""

    RIM = 1 << 0
    CTSM = 1 << 1
    DCDM = 1 << 2
    DSRM = 1 << 3
    RX = 1 << 4
    TX = 1 << 5
    RT = 1 << 6
    FE = 1 << 7
    PE = 1 << 8
    BE = 1 << 9
    OE = 1 << 10


_READABLE = {
    Register.RSR: "rsr",
    Register.FR: "fr",
    Register.ILPR: "ilpr",
    Register.IBRD: "ibrd",
    Register.FBRD: "fbrd",
    Register.LCR_H: "lcr_h",
    Register.CR: "cr",
    Register.IFLS: "ifls",
    Register.IMSC: "imsc",
    Register.RIS: "ris",
    Register.MIS: "mis",
    Register.DMACR: "dmacr",
}

_PLAIN_WRITABLE = {
    Register.ILPR: "ilpr",
    Register.IBRD: "ibrd",
    Register.FBRD: "fbrd",
    Register.LCR_H: "lcr_h",
    Register.CR: "cr",
    Register.IFLS: "ifls",
    Register.DMACR: "dmacr",
}


class Uart:
    """A UART with a 32-byte receive FIFO and immediate transmission.

    Transmitted bytes are handed to ``writer``; without one they collect in
    :attr:`output`.
    """

    def __init__(
        self,
        writer: Optional[Callable[[bytes], object]] = None,
        irq: Optional[IrqLine] = None,
    ) -> None:
        self.output = bytearray()
        self.writer = writer if writer is not None else self.output.extend
        self.irq = irq if irq is not None else IrqLine()
        self.rx_fifo: Deque[int] = deque()
        self.reset()

    def reset(self) -> None:
        """Return every register and FIFO to its power-on state."""
        self.dr = 0
        self.rsr = 0
        self.fr = int(Flag.TXFE | Flag.RXFE)
        self.ilpr = 0
        self.ibrd = 0
        self.fbrd = 0
        self.lcr_h = 0
        self.cr = int(Control.TXE | Control.RXE)
        self.ifls = 0x12
        self.imsc = 0
        self.ris = 0
        self.mis = 0
        self.dmacr = 0
        self.rx_fifo.clear()
        self._update()

    def _enabled(self, direction: Control) -> bool:
        return bool(self.cr & Control.UARTEN) and bool(self.cr & direction)

    def _update(self) -> None:
        flags = Flag.TXFE  # transmission completes immediately
        if not self.rx_fifo:
            flags |= Flag.RXFE
        if len(self.rx_fifo) == FIFO_SIZE:
            flags |= Flag.RXFF
        self.fr = int(flags)
        self.mis = self.ris & self.imsc
        self.irq.set(self.mis != 0)

    def read(self, offset: int) -> int:
        """Read the register at ``offset``; unknown offsets read as zero."""
        if offset == Register.DR:
            return self._read_data()
        name = _READABLE.get(offset)
        if name is None:
            logger.warning("rp2040_uart: bad read offset 0x%x", offset)
            return 0
        return getattr(self, name)

    def _read_data(self) -> int:
        if not self.rx_fifo:
            return 0
        value = self.rx_fifo.popleft()
        if not self.rx_fifo:
            self.ris &= ~Interrupt.RX
        self._update()
        return value

    def write(self, offset: int, value: int) -> None:
        """Write ``value`` to the register at ``offset``."""
        value &= _MASK32
        if offset == Register.DR:
            if self._enabled(Control.TXE):
                self.writer(bytes([value & 0xFF]))
                self.ris |= Interrupt.TX
                self._update()
        elif offset == Register.ECR:
            self.rsr = 0
        elif offset == Register.FR:
            pass  # read only
        elif offset == Register.IMSC:
            self.imsc = value
            self._update()
        elif offset == Register.ICR:
            self.ris &= ~value
            self._update()
        elif offset in _PLAIN_WRITABLE:
            setattr(self, _PLAIN_WRITABLE[offset], value)
        else:
            logger.warning("rp2040_uart: bad write offset 0x%x", offset)

    def can_receive(self) -> int:
        """Number of bytes the receive FIFO can accept right now."""
        if not self._enabled(Control.RXE):
            return 0
        return FIFO_SIZE - len(self.rx_fifo)

    def receive(self, data: bytes) -> None:
        """Feed incoming bytes into the receive FIFO, flagging overrun."""
        if not self._enabled(Control.RXE):
            return
        for byte in data:
            if len(self.rx_fifo) < FIFO_SIZE:
                self.rx_fifo.append(byte)
                self.ris |= Interrupt.RX
            else:
                self.ris |= Interrupt.OE
                break
        self._update()