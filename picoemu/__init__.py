"""Register-level emulation of the RP2040 microcontroller and the Raspberry Pi Pico board."""

__version__ = "0.1.0"