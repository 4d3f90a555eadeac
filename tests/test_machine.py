import struct

import pytest

from picoemu.machine import EM_ARM, ElfError, LoadError, PicoMachine, load_elf
from picoemu.memory import SRAM_BASE, XIP_BASE, XIP_SIZE, AddressSpace, Region


def _make_elf(segments, entry=0, machine=EM_ARM, elf_class=1):
    """Build a minimal ELF32 image; segments are (paddr, data, memsz)."""
    ehdr_size, phdr_size = 52, 32
    phoff = ehdr_size
    data_offset = phoff + phdr_size * len(segments)
    phdrs = b""
    body = b""
    for paddr, contents, memsz in segments:
        phdrs += struct.pack(
            "<IIIIIIII", 1, data_offset + len(body), paddr, paddr,
            len(contents), memsz, 5, 4,
        )
        body += contents
    ident = b"\x7fELF" + bytes([elf_class, 1, 1]) + bytes(9)
    header = struct.pack(
        "<16sHHIIIIIHHHHHH", ident, 2, machine, 1, entry, phoff, 0, 0,
        ehdr_size, phdr_size, len(segments), 0, 0, 0,
    )
    return header + phdrs + body


def _space():
    space = AddressSpace()
    space.map(SRAM_BASE, 0x1000, Region("ram", 0x1000))
    return space


def test_load_elf_places_segments_and_zero_fills():
    space = _space()
    space.write(SRAM_BASE + 4, 0xFFFFFFFF)
    image = load_elf(_make_elf([(SRAM_BASE, b"\x01\x02\x03\x04", 8)], entry=SRAM_BASE + 1), space)
    assert space.read(SRAM_BASE) == 0x04030201
    assert space.read(SRAM_BASE + 4) == 0
    assert image.entry == SRAM_BASE + 1
    assert image.low == SRAM_BASE
    assert image.high == SRAM_BASE + 8
    assert image.size == 8


def test_load_elf_rejects_non_elf():
    with pytest.raises(ElfError):
        load_elf(b"not an elf image at all, just bytes" * 3, _space())


def test_load_elf_rejects_wrong_machine():
    with pytest.raises(ElfError):
        load_elf(_make_elf([(SRAM_BASE, b"\x00", 1)], machine=EM_ARM + 1), _space())


def test_load_elf_rejects_64_bit_class():
    with pytest.raises(ElfError):
        load_elf(_make_elf([(SRAM_BASE, b"\x00", 1)], elf_class=2), _space())


def test_load_elf_rejects_unmapped_segment():
    with pytest.raises(ElfError):
        load_elf(_make_elf([(0x30000000, b"\x00", 1)]), _space())


def test_load_firmware_into_xip(tmp_path):
    path = tmp_path / "fw.bin"
    path.write_bytes(b"\xAA\xBB\xCC\xDD")
    machine = PicoMachine()
    assert machine.load_firmware(path) == 4
    assert machine.soc.read(XIP_BASE) == 0xDDCCBBAA


def test_firmware_given_to_constructor(tmp_path):
    path = tmp_path / "fw.bin"
    path.write_bytes(b"\x11\x22")
    machine = PicoMachine(firmware=path)
    assert machine.soc.read(XIP_BASE, 2) == 0x2211


def test_firmware_takes_priority_over_kernel(tmp_path):
    fw = tmp_path / "fw.bin"
    fw.write_bytes(b"\x01")
    kernel = tmp_path / "kernel.elf"
    kernel.write_bytes(_make_elf([(SRAM_BASE, b"\x7f", 1)]))
    machine = PicoMachine(firmware=fw, kernel=kernel)
    assert machine.soc.read(XIP_BASE, 1) == 1
    assert machine.soc.read(SRAM_BASE, 1) == 0
    assert machine.entry is None


def test_missing_firmware_raises(tmp_path):
    with pytest.raises(LoadError):
        PicoMachine().load_firmware(tmp_path / "missing.bin")


def test_load_elf_kernel(tmp_path):
    path = tmp_path / "kernel.elf"
    path.write_bytes(_make_elf([(SRAM_BASE + 0x10, b"\x99\x88", 2)], entry=SRAM_BASE + 0x11))
    machine = PicoMachine(kernel=path)
    assert machine.entry == SRAM_BASE + 0x11
    assert machine.soc.read(SRAM_BASE + 0x10, 2) == 0x8899


def test_raw_kernel_goes_to_xip(tmp_path):
    path = tmp_path / "kernel.bin"
    path.write_bytes(b"\x42\x43\x44")
    machine = PicoMachine()
    assert machine.load_kernel(path) == 3
    assert machine.soc.read(XIP_BASE, 2) == 0x4342
    assert machine.entry is None


def test_missing_kernel_raises(tmp_path):
    with pytest.raises(LoadError):
        PicoMachine().load_kernel(tmp_path / "missing.elf")


def test_board_defaults_match_soc():
    machine = PicoMachine()
    assert machine.default_ram_size == machine.soc.sram.size
    assert machine.default_ram_id == machine.soc.sram.name
    assert machine.soc.num_cpus == machine.max_cpus