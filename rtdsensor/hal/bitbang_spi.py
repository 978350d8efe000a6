import logging
from contextlib import contextmanager
from dataclasses import dataclass

from .errors import BusOwnershipError
from .gpio import GPIOAdapter, HIGH, LOW

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SPILines:
    """The four GPIO lines of a bit-banged SPI link."""
    cs: object
    sclk: object
    mosi: object
    miso: object

    def __post_init__(self):
        if len(set(self.all)) != 4:
            raise ValueError(f"SPI lines must be four distinct pins, got {self.all}")

    @property
    def shared(self) -> tuple:
        """Clock and data lines, the part of the bus other chips could share."""
        return (self.sclk, self.mosi, self.miso)

    @property
    def all(self) -> tuple:
        return (self.cs, self.sclk, self.mosi, self.miso)


class BusLease:
    """
    Token for exclusive ownership of a set of SPI lines on one adapter.

    Acquired on construction. Nobody else can claim the same pins on that
    adapter until release() is called.
    """
    def __init__(self, adapter: GPIOAdapter, lines: SPILines):
        adapter.claim(lines.all)
        self._adapter = adapter
        self.lines = lines
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def check(self):
        if not self._active:
            raise BusOwnershipError(f"Bus lease for {self.lines} has been released")

    def release(self):
        if self._active:
            self._adapter.unclaim(self.lines.all)
            self._active = False


class BitBangSPI:
    """
    8-bit, MSB-first, full-duplex SPI over plain GPIO lines.

    Each bit raises the clock, drives data out, drops the clock and then
    samples data in, so the clock is always LOW between transfers.
    """
    def __init__(self, adapter: GPIOAdapter, lines: SPILines):
        self.adapter = adapter
        self.lines = lines

    def transfer(self, byte_out: int) -> int:
        """
        Shifts one byte out and one byte in.

        Args:
            byte_out: The byte to transmit (only the low 8 bits are used).

        Returns:
            int: The byte clocked in on the data-in line.
        """
        adapter = self.adapter
        sclk, mosi, miso = self.lines.sclk, self.lines.mosi, self.lines.miso
        reply = 0
        for bit in range(7, -1, -1):
            reply <<= 1
            adapter.write_digital(sclk, HIGH)
            adapter.write_digital(mosi, HIGH if byte_out & (1 << bit) else LOW)
            adapter.write_digital(sclk, LOW)
            if adapter.read_digital(miso):
                reply |= 1
        return reply

    def select(self):
        self.adapter.write_digital(self.lines.cs, LOW)

    def deselect(self):
        self.adapter.write_digital(self.lines.cs, HIGH)

    @contextmanager
    def transaction(self):
        """
        Frames one SPI transaction: clock parked LOW, chip select asserted for
        the whole block and deasserted on exit.
        """
        self.adapter.write_digital(self.lines.sclk, LOW)
        self.select()
        try:
            yield self
        finally:
            self.deselect()
