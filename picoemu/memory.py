"""Memory regions and the RP2040 physical address space."""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import List, Protocol, Tuple

logger = logging.getLogger(__name__)

KIB = 1024
MIB = 1024 * KIB

NUM_CORES = 2

ROM_BASE = 0x00000000
ROM_SIZE = 16 * KIB
XIP_BASE = 0x10000000
XIP_SIZE = 16 * MIB
SRAM_BASE = 0x20000000
SRAM_SIZE = 264 * KIB
SRAM_BANK_SIZE = 64 * KIB

APB_BASE = 0x40000000
SYSINFO_BASE = 0x40000000
SYSCFG_BASE = 0x40004000
CLOCKS_BASE = 0x40008000
RESETS_BASE = 0x4000C000
PSM_BASE = 0x40010000
IO_BANK0_BASE = 0x40014000
IO_QSPI_BASE = 0x40018000
PADS_BANK0_BASE = 0x4001C000
PADS_QSPI_BASE = 0x40020000
XOSC_BASE = 0x40024000
PLL_SYS_BASE = 0x40028000
PLL_USB_BASE = 0x4002C000
BUSCTRL_BASE = 0x40030000
UART0_BASE = 0x40034000
UART1_BASE = 0x40038000
SPI0_BASE = 0x4003C000
SPI1_BASE = 0x40040000
I2C0_BASE = 0x40044000
I2C1_BASE = 0x40048000
ADC_BASE = 0x4004C000
PWM_BASE = 0x40050000
TIMER_BASE = 0x40054000
WATCHDOG_BASE = 0x40058000
RTC_BASE = 0x4005C000
ROSC_BASE = 0x40060000
VREG_BASE = 0x40064000
TBMAN_BASE = 0x4006C000

DMA_BASE = 0x50000000
USBCTRL_BASE = 0x50100000
PIO0_BASE = 0x50200000
PIO1_BASE = 0x50300000
XIP_AUX_BASE = 0x50400000

SIO_BASE = 0xD0000000
PPB_BASE = 0xE0000000

PERIPHERAL_SIZE = 0x1000

_ACCESS_SIZES = (1, 2, 4, 8)


class MemoryAccessError(Exception):
    """An access touched an address that nothing is mapped at."""


class Device(Protocol):
    """Anything that can be mapped into an address space."""

    def read(self, offset: int, size: int) -> int: ...

    def write(self, offset: int, value: int, size: int) -> None: ...


def _check_size(size: int) -> None:
    if size not in _ACCESS_SIZES:
        raise ValueError(f"unsupported access size: {size}")


class Region:
    """A block of RAM or ROM backed by a byte array, little endian."""

    def __init__(self, name: str, size: int, readonly: bool = False) -> None:
        if size <= 0:
            raise ValueError("region size must be positive")
        self.name = name
        self.size = size
        self.readonly = readonly
        self.data = bytearray(size)

    def _check_range(self, offset: int, length: int) -> None:
        if offset < 0 or offset + length > self.size:
            raise MemoryAccessError(
                f"{self.name}: access of {length} bytes at offset 0x{offset:x} is out of range"
            )

    def read(self, offset: int, size: int = 4) -> int:
        """Read a little-endian value of ``size`` bytes at ``offset``."""
        _check_size(size)
        self._check_range(offset, size)
        return int.from_bytes(self.data[offset:offset + size], "little")

    def write(self, offset: int, value: int, size: int = 4) -> None:
        """Write ``value`` at ``offset``; writes to read-only regions are dropped."""
        _check_size(size)
        self._check_range(offset, size)
        if self.readonly:
            logger.warning("%s: write to read-only memory at 0x%x ignored", self.name, offset)
            return
        value &= (1 << (8 * size)) - 1
        self.data[offset:offset + size] = value.to_bytes(size, "little")

    def load(self, offset: int, data: bytes) -> None:
        """Copy ``data`` in at ``offset``, even into a read-only region."""
        self._check_range(offset, len(data))
        self.data[offset:offset + len(data)] = data

    def __repr__(self) -> str:
        kind = "ROM" if self.readonly else "RAM"
        return f"Region({self.name!r}, size=0x{self.size:x}, {kind})"


class UnimplementedDevice:
    """A placeholder for a peripheral that is not modelled: reads are zero."""

    def __init__(self, name: str, size: int = PERIPHERAL_SIZE) -> None:
        self.name = name
        self.size = size

    def read(self, offset: int, size: int = 4) -> int:
        logger.info("%s: unimplemented device read of size %d at 0x%x", self.name, size, offset)
        return 0

    def write(self, offset: int, value: int, size: int = 4) -> None:
        logger.info(
            "%s: unimplemented device write of size %d at 0x%x, value 0x%x",
            self.name, size, offset, value,
        )

    def __repr__(self) -> str:
        return f"UnimplementedDevice({self.name!r}, size=0x{self.size:x})"


@dataclass(frozen=True)
class Mapping:
    """A device placed at ``base`` covering ``size`` bytes."""

    base: int
    size: int
    device: Device
    name: str

    @property
    def end(self) -> int:
        """First address past the mapping."""
        return self.base + self.size

    def __contains__(self, address: int) -> bool:
        return self.base <= address < self.end


class AddressSpace:
    """A flat 32-bit address space of non-overlapping device mappings."""

    def __init__(self) -> None:
        self._mappings: List[Mapping] = []
        self._bases: List[int] = []

    @property
    def mappings(self) -> Tuple[Mapping, ...]:
        """Every mapping, in address order."""
        return tuple(self._mappings)

    def map(self, base: int, size: int, device: Device, name: str = "") -> Mapping:
        """Place ``device`` at ``base``; overlapping an existing mapping is an error."""
        if size <= 0:
            raise ValueError("mapping size must be positive")
        if base < 0:
            raise ValueError("mapping base must not be negative")
        mapping = Mapping(base, size, device, name or getattr(device, "name", ""))
        index = bisect.bisect_left(self._bases, base)
        neighbours = self._mappings[max(index - 1, 0):index + 1]
        for other in neighbours:
            if base < other.end and other.base < mapping.end:
                raise ValueError(
                    f"mapping {mapping.name!r} at 0x{base:x} overlaps {other.name!r}"
                )
        self._mappings.insert(index, mapping)
        self._bases.insert(index, base)
        return mapping

    def find(self, address: int) -> Tuple[Mapping, int]:
        """The mapping that holds ``address`` and the offset within it."""
        index = bisect.bisect_right(self._bases, address) - 1
        if index >= 0:
            mapping = self._mappings[index]
            if address in mapping:
                return mapping, address - mapping.base
        raise MemoryAccessError(f"no device mapped at 0x{address:08x}")

    def _locate(self, address: int, length: int) -> Tuple[Mapping, int]:
        mapping, offset = self.find(address)
        if address + length > mapping.end:
            raise MemoryAccessError(
                f"access of {length} bytes at 0x{address:08x} crosses the end of {mapping.name!r}"
            )
        return mapping, offset

    def read(self, address: int, size: int = 4) -> int:
        """Read ``size`` bytes at ``address`` from the device mapped there."""
        _check_size(size)
        mapping, offset = self._locate(address, size)
        return mapping.device.read(offset, size)

    def write(self, address: int, value: int, size: int = 4) -> None:
        """Write ``value`` of ``size`` bytes at ``address`` to the device mapped there."""
        _check_size(size)
        mapping, offset = self._locate(address, size)
        mapping.device.write(offset, value, size)

    def load(self, address: int, data: bytes) -> None:
        """Copy ``data`` into the memory region mapped at ``address``."""
        if not data:
            return
        mapping, offset = self._locate(address, len(data))
        if not isinstance(mapping.device, Region):
            raise MemoryAccessError(
                f"cannot load data into {mapping.name!r}: it is not a memory region"
            )
        mapping.device.load(offset, data)