import logging

import pytest

from picoemu.irq import IrqLine
from picoemu.uart import FIFO_SIZE, Control, Flag, Interrupt, Register, Uart

UART_FR_TXFE = 1 << 7
UART_FR_RXFE = 1 << 4
UART_CR_UARTEN = 1 << 0
UART_CR_TXE = 1 << 8
UART_CR_RXE = 1 << 9
UART_LCR_H_FEN = 1 << 4
UART_LCR_H_WLEN_8 = 3 << 5


def uart_init(uart):
    uart.write(Register.CR, 0)
    uart.write(Register.IBRD, 26)
    uart.write(Register.FBRD, 3)
    uart.write(Register.LCR_H, UART_LCR_H_FEN | UART_LCR_H_WLEN_8)
    uart.write(Register.CR, UART_CR_UARTEN | UART_CR_TXE | UART_CR_RXE)


def uart_putc(uart, ch):
    for _ in range(100):
        if uart.read(Register.FR) & UART_FR_TXFE:
            break
    else:
        raise AssertionError("TX FIFO never drained")
    uart.write(Register.DR, ord(ch))


def uart_puts(uart, text):
    for ch in text:
        if ch == "\n":
            uart_putc(uart, "\r")
        uart_putc(uart, ch)


def uart_getc(uart):
    for _ in range(100):
        if not uart.read(Register.FR) & UART_FR_RXFE:
            break
    else:
        raise AssertionError("RX FIFO stayed empty")
    return chr(uart.read(Register.DR) & 0xFF)


@pytest.fixture
def uart():
    device = Uart()
    uart_init(device)
    return device


def test_reset_values():
    device = Uart()
    assert device.read(Register.FR) == UART_FR_TXFE | UART_FR_RXFE
    assert device.read(Register.CR) == UART_CR_TXE | UART_CR_RXE
    assert device.read(Register.IFLS) == 0x12
    assert device.read(Register.IMSC) == 0
    assert device.irq.level is False


def test_init_sequence_registers(uart):
    assert uart.read(Register.IBRD) == 26
    assert uart.read(Register.FBRD) == 3
    assert uart.read(Register.LCR_H) == UART_LCR_H_FEN | UART_LCR_H_WLEN_8
    assert uart.read(Register.CR) == 0x301


def test_uart_program_output(uart):
    uart_puts(uart, "RP2040 UART Test Program\n")
    uart_puts(uart, "========================\n\n")
    uart_puts(uart, "Testing UART output...\n")
    uart_puts(uart, "This message should appear on the console.\n\n")
    uart_puts(uart, "Testing character output: ")
    for code in range(ord("A"), ord("Z") + 1):
        uart_putc(uart, chr(code))
    uart_puts(uart, "\n\n")
    uart_puts(uart, "Testing numbers: ")
    for digit in range(10):
        uart_putc(uart, chr(ord("0") + digit))
        uart_putc(uart, " ")
    uart_puts(uart, "\n\n")
    uart_puts(uart, "UART test complete!\n")

    expected = (
        "RP2040 UART Test Program\r\n"
        "========================\r\n\r\n"
        "Testing UART output...\r\n"
        "This message should appear on the console.\r\n\r\n"
        "Testing character output: ABCDEFGHIJKLMNOPQRSTUVWXYZ\r\n\r\n"
        "Testing numbers: 0 1 2 3 4 5 6 7 8 9 \r\n\r\n"
        "UART test complete!\r\n"
    )
    assert uart.output.decode("ascii") == expected


def test_writer_callback_receives_bytes():
    chunks = []
    device = Uart(writer=chunks.append)
    uart_init(device)
    uart_puts(device, "hi")
    assert chunks == [b"h", b"i"]
    assert device.output == bytearray()


def test_data_write_truncates_to_byte(uart):
    uart.write(Register.DR, 0x141)
    assert bytes(uart.output) == b"A"


def test_no_transmit_when_disabled():
    device = Uart()
    device.write(Register.CR, UART_CR_TXE)
    device.write(Register.DR, ord("x"))
    assert device.output == bytearray()
    assert device.ris & Interrupt.TX == 0


def test_no_transmit_without_txe():
    device = Uart()
    device.write(Register.CR, UART_CR_UARTEN | UART_CR_RXE)
    device.write(Register.DR, ord("x"))
    assert device.output == bytearray()


def test_transmit_sets_tx_raw_interrupt(uart):
    assert uart.read(Register.RIS) & Interrupt.TX == 0
    uart.write(Register.DR, ord("a"))
    assert uart.read(Register.RIS) & Interrupt.TX == Interrupt.TX
    assert bytes(uart.output) == b"a"


def test_receive_then_getc(uart):
    uart.receive(b"ok")
    assert uart_getc(uart) == "o"
    assert uart_getc(uart) == "k"
    assert uart.read(Register.FR) & UART_FR_RXFE


def test_read_empty_data_register_returns_zero(uart):
    assert uart.read(Register.DR) == 0


def test_receive_ignored_when_disabled():
    device = Uart()
    device.receive(b"abc")
    assert device.can_receive() == 0
    assert len(device.rx_fifo) == 0


def test_can_receive_tracks_fifo_space(uart):
    assert uart.can_receive() == FIFO_SIZE
    uart.receive(b"abcd")
    assert uart.can_receive() == FIFO_SIZE - 4


def test_receive_overrun(uart):
    uart.receive(bytes(range(FIFO_SIZE + 1)))
    assert len(uart.rx_fifo) == FIFO_SIZE
    assert uart.read(Register.RIS) & Interrupt.OE
    assert uart.read(Register.FR) & Flag.RXFF
    assert uart.can_receive() == 0


def test_rx_interrupt_raised_and_cleared_by_draining(uart):
    levels = []
    uart.irq.connect(levels.append)
    uart.write(Register.IMSC, Interrupt.RX)
    uart.receive(b"z")
    assert uart.irq.level is True
    assert uart.read(Register.MIS) == Interrupt.RX
    assert uart.read(Register.DR) == ord("z")
    assert uart.irq.level is False
    assert uart.read(Register.RIS) & Interrupt.RX == 0
    assert levels[-1] is False


def test_interrupt_clear_register(uart):
    irq = uart.irq
    uart.write(Register.IMSC, Interrupt.TX)
    uart.write(Register.DR, ord("q"))
    assert irq.level is True
    uart.write(Register.ICR, Interrupt.TX)
    assert uart.read(Register.RIS) & Interrupt.TX == 0
    assert irq.level is False


def test_external_irq_line_is_driven():
    line = IrqLine()
    device = Uart(irq=line)
    device.write(Register.CR, Control.UARTEN | Control.RXE)
    device.write(Register.IMSC, Interrupt.RX)
    device.receive(b"1")
    assert line.level is True


def test_error_clear_resets_receive_status(uart):
    uart.rsr = 0xF
    uart.write(Register.ECR, 0)
    assert uart.read(Register.RSR) == 0


def test_flag_register_is_read_only(uart):
    before = uart.read(Register.FR)
    uart.write(Register.FR, 0)
    assert uart.read(Register.FR) == before


def test_dma_and_ilpr_round_trip(uart):
    uart.write(Register.DMACR, 0x7)
    uart.write(Register.ILPR, 0x55)
    assert uart.read(Register.DMACR) == 0x7
    assert uart.read(Register.ILPR) == 0x55


def test_bad_read_offset_logs_and_returns_zero(uart, caplog):
    with caplog.at_level(logging.WARNING, logger="picoemu.uart"):
        assert uart.read(0x100) == 0
    assert "bad read offset 0x100" in caplog.text


def test_interrupt_clear_is_write_only(uart, caplog):
    with caplog.at_level(logging.WARNING, logger="picoemu.uart"):
        assert uart.read(Register.ICR) == 0
    assert "bad read offset 0x44" in caplog.text


def test_bad_write_offset_logs(uart, caplog):
    with caplog.at_level(logging.WARNING, logger="picoemu.uart"):
        uart.write(Register.RIS, 0xFF)
    assert "bad write offset 0x3c" in caplog.text
    assert uart.read(Register.RIS) == 0


def test_reset_clears_fifo_and_registers(uart):
    uart.receive(b"abc")
    uart.write(Register.IMSC, Interrupt.RX)
    uart.reset()
    assert len(uart.rx_fifo) == 0
    assert uart.read(Register.IMSC) == 0
    assert uart.read(Register.IBRD) == 0
    assert uart.irq.level is False
    assert uart.read(Register.FR) == UART_FR_TXFE | UART_FR_RXFE