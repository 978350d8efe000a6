import logging

from .bitbang_spi import BitBangSPI

logger = logging.getLogger(__name__)

# MAX31865 Register Addresses
CONFIG = 0x00
RTD_MSB = 0x01
RTD_LSB = 0x02
HIGH_FAULT_MSB = 0x03
HIGH_FAULT_LSB = 0x04
LOW_FAULT_MSB = 0x05
LOW_FAULT_LSB = 0x06
FAULT_STATUS = 0x07

READ_MASK = 0x7F  # top bit clear = read
WRITE_BIT = 0x80  # top bit set = write
DUMMY_BYTE = 0xFF


class RegisterAccess:
    """
    Register reads and writes on top of a BitBangSPI link.

    Every call is one chip-select framed transaction: the chip latches the
    address on the first byte and auto-increments it for the bytes that follow.
    """
    def __init__(self, spi: BitBangSPI):
        self.spi = spi

    def read_registers(self, address: int, count: int) -> bytes:
        """
        Reads `count` consecutive registers starting at `address`.

        Args:
            address: 7-bit register address.
            count: Number of bytes to read.

        Returns:
            bytes: The register contents, lowest address first.
        """
        address &= READ_MASK
        with self.spi.transaction() as spi:
            spi.transfer(address)
            data = bytes(spi.transfer(DUMMY_BYTE) for _ in range(count))
        logger.debug(f"Read 0x{address:02X} -> {data.hex()}")
        return data

    def read_register8(self, address: int) -> int:
        return self.read_registers(address, 1)[0]

    def read_register16(self, address: int) -> int:
        data = self.read_registers(address, 2)
        return (data[0] << 8) | data[1]

    def write_register8(self, address: int, data: int):
        with self.spi.transaction() as spi:
            spi.transfer(address | WRITE_BIT)
            spi.transfer(data & 0xFF)
        logger.debug(f"Wrote 0x{data & 0xFF:02X} -> 0x{address & READ_MASK:02X}")

    def write_register16(self, address: int, value: int):
        """Writes an MSB/LSB register pair in a single transaction."""
        with self.spi.transaction() as spi:
            spi.transfer(address | WRITE_BIT)
            spi.transfer((value >> 8) & 0xFF)
            spi.transfer(value & 0xFF)
        logger.debug(f"Wrote 0x{value & 0xFFFF:04X} -> 0x{address & READ_MASK:02X}")
