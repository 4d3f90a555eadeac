"""The Raspberry Pi Pico board: an RP2040 plus firmware and kernel loading."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from .memory import SRAM_SIZE, XIP_BASE, XIP_SIZE, AddressSpace, MemoryAccessError
from .soc import Rp2040
from .timer import VirtualClock

EM_ARM = 40
PT_LOAD = 1
_ELF_MAGIC = b"\x7fELF"
_ELFCLASS32 = 1
_ELFDATA2LSB = 1
_EHDR = struct.Struct("<16sHHIIIIIHHHHHH")
_PHDR = struct.Struct("<IIIIIIII")

PathLike = Union[str, Path]


class LoadError(Exception):
    """An image could not be loaded into the machine."""


class ElfError(Exception):
    """Data is not a loadable 32-bit little-endian ARM ELF image."""


@dataclass(frozen=True)
class ElfImage:
    """What loading an ELF image placed in memory."""

    entry: int
    low: int
    high: int
    size: int


def load_elf(data: bytes, space: AddressSpace) -> ElfImage:
    """Copy every loadable segment of the ELF image ``data`` into ``space``."""
    if len(data) < _EHDR.size or data[:4] != _ELF_MAGIC:
        raise ElfError("not an ELF image")
    (ident, _type, machine, _version, entry, phoff, _shoff, _flags,
     _ehsize, phentsize, phnum, _shentsize, _shnum, _shstrndx) = _EHDR.unpack_from(data)
    if ident[4] != _ELFCLASS32:
        raise ElfError("not a 32-bit ELF image")
    if ident[5] != _ELFDATA2LSB:
        raise ElfError("not a little-endian ELF image")
    if machine != EM_ARM:
        raise ElfError(f"ELF image is for machine {machine}, not ARM")
    if phnum and phentsize < _PHDR.size:
        raise ElfError("program header entries are too small")
    if phoff + phnum * phentsize > len(data):
        raise ElfError("program header table lies outside the image")

    segments = []
    for index in range(phnum):
        (p_type, p_offset, _vaddr, p_paddr, p_filesz, p_memsz,
         _pflags, _align) = _PHDR.unpack_from(data, phoff + index * phentsize)
        if p_type != PT_LOAD or p_memsz == 0:
            continue
        if p_filesz > p_memsz:
            raise ElfError("segment file size exceeds its memory size")
        if p_offset + p_filesz > len(data):
            raise ElfError("segment data lies outside the image")
        segments.append((p_paddr, data[p_offset:p_offset + p_filesz], p_memsz))

    for address, contents, memsz in segments:
        try:
            space.load(address, contents + bytes(memsz - len(contents)))
        except MemoryAccessError as exc:
            raise ElfError(str(exc)) from exc

    if not segments:
        return ElfImage(entry=entry, low=0, high=0, size=0)
    return ElfImage(
        entry=entry,
        low=min(address for address, _, _ in segments),
        high=max(address + memsz for address, _, memsz in segments),
        size=sum(memsz for _, _, memsz in segments),
    )


def _load_raw(path: PathLike, space: AddressSpace, address: int, limit: int) -> int:
    data = Path(path).read_bytes()
    if len(data) > limit:
        raise LoadError(f"image of {len(data)} bytes exceeds the {limit} bytes available")
    space.load(address, data)
    return len(data)


class PicoMachine:
    """A Raspberry Pi Pico board.

    A firmware image is loaded into XIP flash; otherwise a kernel is loaded as
    an ELF image, or as a raw binary into XIP flash when it is not one.
    """

    description = "Raspberry Pi Pico (RP2040)"
    max_cpus = 2
    default_cpus = 2
    default_ram_size = SRAM_SIZE
    default_ram_id = "rp2040.sram"

    def __init__(
        self,
        firmware: Optional[PathLike] = None,
        kernel: Optional[PathLike] = None,
        clock: Optional[VirtualClock] = None,
        serial: Optional[Callable[[bytes], object]] = None,
    ) -> None:
        self.soc = Rp2040(clock=clock, serial=serial, num_cpus=self.default_cpus)
        self.entry: Optional[int] = None
        if firmware is not None:
            self.load_firmware(firmware)
        elif kernel is not None:
            self.load_kernel(kernel)

    def load_firmware(self, path: PathLike) -> int:
        """Load a raw firmware image into XIP flash; return its size."""
        try:
            return _load_raw(path, self.soc.space, XIP_BASE, XIP_SIZE)
        except (OSError, LoadError, MemoryAccessError) as exc:
            raise LoadError(f"Could not load firmware '{path}'") from exc

    def load_kernel(self, path: PathLike) -> int:
        """Load an ELF kernel, or a raw binary into XIP flash; return bytes loaded."""
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise LoadError(f"Could not load kernel '{path}'") from exc
        try:
            image = load_elf(data, self.soc.space)
        except ElfError:
            try:
                return _load_raw(path, self.soc.space, XIP_BASE, XIP_SIZE)
            except (OSError, LoadError, MemoryAccessError) as exc:
                raise LoadError(f"Could not load kernel '{path}'") from exc
        self.entry = image.entry
        return image.size