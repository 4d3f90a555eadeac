"""The RP2040 system-on-chip: memory map, peripherals and interrupt wiring."""

from __future__ import annotations

from enum import IntEnum
from typing import Callable, List, Optional

from .gpio import MMIO_SIZE as GPIO_MMIO_SIZE
from .gpio import Gpio
from .irq import IrqLine
from .memory import (
    IO_BANK0_BASE,
    NUM_CORES,
    PADS_BANK0_BASE,
    PERIPHERAL_SIZE,
    PSM_BASE,
    RESETS_BASE,
    ROM_BASE,
    ROM_SIZE,
    SIO_BASE,
    SRAM_BASE,
    SRAM_SIZE,
    SYSCFG_BASE,
    SYSINFO_BASE,
    CLOCKS_BASE,
    TIMER_BASE,
    UART0_BASE,
    UART1_BASE,
    WATCHDOG_BASE,
    XIP_BASE,
    XIP_SIZE,
    AddressSpace,
    Region,
    UnimplementedDevice,
)
from .sio import MMIO_SIZE as SIO_MMIO_SIZE
from .sio import Sio
from .timer import MMIO_SIZE as TIMER_MMIO_SIZE
from .timer import NUM_ALARMS, Timer, VirtualClock
from .uart import MMIO_SIZE as UART_MMIO_SIZE
from .uart import Uart

NUM_IRQS = 32


class Irq(IntEnum):
    """NVIC interrupt numbers of the RP2040."""

    TIMER_IRQ_0 = 0
    TIMER_IRQ_1 = 1
    TIMER_IRQ_2 = 2
    TIMER_IRQ_3 = 3
    PWM_IRQ_WRAP = 4
    USBCTRL_IRQ = 5
    XIP_IRQ = 6
    PIO0_IRQ_0 = 7
    PIO0_IRQ_1 = 8
    PIO1_IRQ_0 = 9
    PIO1_IRQ_1 = 10
    DMA_IRQ_0 = 11
    DMA_IRQ_1 = 12
    IO_IRQ_BANK0 = 13
    IO_IRQ_QSPI = 14
    SIO_IRQ_PROC0 = 15
    SIO_IRQ_PROC1 = 16
    CLOCKS_IRQ = 17
    SPI0_IRQ = 18
    SPI1_IRQ = 19
    UART0_IRQ = 20
    UART1_IRQ = 21
    ADC_IRQ_FIFO = 22
    I2C0_IRQ = 23
    I2C1_IRQ = 24
    RTC_IRQ = 25


_UNIMPLEMENTED = (
    ("rp2040.sysinfo", SYSINFO_BASE),
    ("rp2040.syscfg", SYSCFG_BASE),
    ("rp2040.clocks", CLOCKS_BASE),
    ("rp2040.resets", RESETS_BASE),
    ("rp2040.psm", PSM_BASE),
    ("rp2040.pads_bank0", PADS_BANK0_BASE),
    ("rp2040.watchdog", WATCHDOG_BASE),
)


class _RegisterBlock:
    """Presents a peripheral's register interface as a sized bus device."""

    def __init__(
        self,
        name: str,
        read: Callable[[int], int],
        write: Callable[[int, int], None],
    ) -> None:
        self.name = name
        self._read = read
        self._write = write

    def read(self, offset: int, size: int = 4) -> int:
        return self._read(offset) & ((1 << (8 * size)) - 1)

    def write(self, offset: int, value: int, size: int = 4) -> None:
        self._write(offset, value & ((1 << (8 * size)) - 1))


class Rp2040:
    """The RP2040 chip as seen from its system bus.

    ``irq_levels[core][n]`` holds the level of NVIC input ``n`` on ``core``.
    Bytes sent by UART0 go to ``serial`` when given.
    """

    def __init__(
        self,
        clock: Optional[VirtualClock] = None,
        serial: Optional[Callable[[bytes], object]] = None,
        num_cpus: int = NUM_CORES,
    ) -> None:
        if not 1 <= num_cpus <= NUM_CORES:
            raise ValueError(f"num_cpus must be between 1 and {NUM_CORES}")
        self.num_cpus = num_cpus
        self.clock = clock if clock is not None else VirtualClock()
        self.irq_levels: List[List[bool]] = [[False] * NUM_IRQS for _ in range(NUM_CORES)]

        self.rom = Region("rp2040.rom", ROM_SIZE, readonly=True)
        self.sram = Region("rp2040.sram", SRAM_SIZE)
        self.xip = Region("rp2040.xip", XIP_SIZE)

        self.uart = [
            Uart(writer=serial, irq=self._nvic_line(0, Irq.UART0_IRQ)),
            Uart(irq=self._nvic_line(0, Irq.UART1_IRQ)),
        ]
        self.gpio = Gpio(
            proc0_irq=self._nvic_line(0, Irq.IO_IRQ_BANK0),
            proc1_irq=self._nvic_line(1, Irq.IO_IRQ_BANK0),
        )
        self.timer = Timer(
            clock=self.clock,
            irqs=[self._nvic_line(0, Irq.TIMER_IRQ_0 + i) for i in range(NUM_ALARMS)],
        )
        self.sio = Sio()

        self.space = AddressSpace()
        self.space.map(ROM_BASE, ROM_SIZE, self.rom)
        self.space.map(SRAM_BASE, SRAM_SIZE, self.sram)
        self.space.map(XIP_BASE, XIP_SIZE, self.xip)
        for index, (base, uart) in enumerate(zip((UART0_BASE, UART1_BASE), self.uart)):
            self.space.map(
                base,
                UART_MMIO_SIZE,
                _RegisterBlock(f"rp2040.uart{index}", uart.read, uart.write),
            )
        self.space.map(
            IO_BANK0_BASE,
            GPIO_MMIO_SIZE,
            _RegisterBlock("rp2040.io_bank0", self.gpio.read, self.gpio.write),
        )
        self.space.map(
            TIMER_BASE,
            TIMER_MMIO_SIZE,
            _RegisterBlock("rp2040.timer", self.timer.read, self.timer.write),
        )
        self.space.map(
            SIO_BASE,
            SIO_MMIO_SIZE,
            _RegisterBlock(
                "rp2040.sio",
                lambda offset: self.sio.read(offset, 0),
                lambda offset, value: self.sio.write(offset, value, 0),
            ),
        )
        for name, base in _UNIMPLEMENTED:
            self.space.map(base, PERIPHERAL_SIZE, UnimplementedDevice(name))

    def _nvic_line(self, core: int, irq: int) -> IrqLine:
        def handler(level: bool) -> None:
            self.irq_levels[core][irq] = level

        return IrqLine(handler)

    def read(self, address: int, size: int = 4) -> int:
        """Read ``size`` bytes from the system bus at ``address``."""
        return self.space.read(address, size)

    def write(self, address: int, value: int, size: int = 4) -> None:
        """Write ``value`` of ``size`` bytes to the system bus at ``address``."""
        self.space.write(address, value, size)

    def reset(self) -> None:
        """Return every peripheral to its power-on state; memory is kept."""
        for uart in self.uart:
            uart.reset()
        self.gpio.reset()
        self.timer.reset()
        self.sio.reset()