# picoemu

Register-level models of the RP2040 microcontroller's peripherals and of
the Raspberry Pi Pico board, written in plain Python with no dependencies.

The package provides:

- `picoemu.uart.Uart`: the UART, with its data, flag, control and
  interrupt registers and a 32-byte receive FIFO. Transmitted bytes go to
  a `writer` callable, or collect in `Uart.output` when none is given.
  Incoming bytes are fed in with `Uart.receive()`; `Uart.can_receive()`
  says how many more fit.
- `picoemu.timer.Timer`: the 64-bit microsecond timer with four alarms.
  It runs against a `picoemu.timer.VirtualClock`, which only moves when
  you call `advance()`; due alarms fire in deadline order.
- `picoemu.gpio.Gpio`: the IO bank 0 per-pin STATUS/CTRL registers and
  interrupt registers for 30 pins. `Gpio.set_input()` drives a pin's input
  level and latches level/edge interrupts for pins set to the SIO function.
- `picoemu.sio.Sio`: the single-cycle I/O block: GPIO output and
  output-enable registers with set/clear/xor aliases, CPUID, the two
  inter-core FIFOs (`picoemu.sio.Fifo`, 8 words deep) and 32 spinlocks.
- `picoemu.memory`: `Region` (RAM or ROM backed by bytes, little endian),
  `UnimplementedDevice` (reads as zero, ignores writes) and
  `AddressSpace`, a flat map of non-overlapping devices. Accesses where
  nothing is mapped raise `MemoryAccessError`. The module also holds the
  RP2040 memory-map constants.
- `picoemu.soc.Rp2040`: the SoC with ROM, SRAM, XIP flash, both UARTs,
  GPIO, timer and SIO mapped at their datasheet addresses, placeholder
  devices for sysinfo, syscfg, clocks, resets, psm, pads_bank0 and
  watchdog, and peripheral interrupts wired into `irq_levels[core][n]`.
- `picoemu.machine.PicoMachine`: the Pico board. `load_firmware()` copies
  a raw image into XIP flash; `load_kernel()` loads a 32-bit ARM ELF image
  (via `picoemu.machine.load_elf`) or, if the file is not one, a raw
  binary into XIP flash. Failures raise `LoadError`.

Interrupt outputs are `picoemu.irq.IrqLine` objects; `connect()` a handler
to be called with the level each time the line is set.

## Installing

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Example

Drive the UART through the SoC's memory map, the same way firmware would:

```python
from picoemu.soc import Rp2040

sent = bytearray()
soc = Rp2040(serial=sent.extend)   # receives each transmitted byte

UART0 = 0x40034000
soc.write(UART0 + 0x030, 0x301, 4)  # CR: UARTEN | TXE | RXE
for ch in b"hi":
    soc.write(UART0 + 0x000, ch, 4)
assert bytes(sent) == b"hi"
```

Timers run on virtual time:

```python
from picoemu.timer import Timer, VirtualClock

clock = VirtualClock()
timer = Timer(clock)
timer.write(0x38, 0x1)        # INTE: enable alarm 0
timer.write(0x10, 500_000)    # ALARM0 at 0.5 s
clock.advance(500_000)
assert timer.read(0x34) & 1   # INTR: alarm 0 has fired
```

Load an image onto a board:

```python
from picoemu.machine import PicoMachine

board = PicoMachine()
board.load_kernel("blinky.elf")
print(hex(board.entry))
```

Register offsets and reset values follow the RP2040 datasheet. Reads and
writes at register offsets a peripheral does not implement return 0 and
are ignored, with a warning logged.

## What it does not do

There is no processor model: nothing fetches or executes instructions, so
loading an image places it in memory but does not run it. The bus view of
the SIO block always acts as core 0. DMA, PIO, SPI, I2C, ADC, PWM, USB and
the other peripherals are not modelled, and there is no command-line tool.