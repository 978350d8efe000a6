import pytest

from rtdsensor.hal.bitbang_spi import BitBangSPI, BusLease, SPILines
from rtdsensor.hal.errors import BusOwnershipError

from conftest import CS, MISO, MOSI, SCLK, FakeMAX31865, LoopbackAdapter

LINES = SPILines(cs=CS, sclk=SCLK, mosi=MOSI, miso=MISO)


@pytest.mark.parametrize("value", [0x00, 0xFF, 0xA5, 0x5A, 0x80, 0x01])
def test_transfer_loopback_returns_sent_byte(value):
    spi = BitBangSPI(LoopbackAdapter(), LINES)
    assert spi.transfer(value) == value


def test_transfer_line_activity_per_bit():
    adapter = LoopbackAdapter()
    spi = BitBangSPI(adapter, LINES)
    spi.transfer(0b10110010)

    writes = [c for c in adapter.calls if c[0] == "write"]
    reads = [c for c in adapter.calls if c[0] == "read"]
    assert len(writes) == 24  # clock high, data, clock low
    assert {c[1] for c in writes} == {SCLK, MOSI}
    assert len(reads) == 8
    assert all(c[1] == MISO for c in reads)

    # clock high, data, clock low, sample - for every bit
    for i in range(8):
        chunk = adapter.calls[i * 4:(i + 1) * 4]
        assert chunk[0] == ("write", SCLK, 1)
        assert chunk[1][:2] == ("write", MOSI)
        assert chunk[2] == ("write", SCLK, 0)
        assert chunk[3] == ("read", MISO)

    # MSB first
    assert [c[1][2] for c in (adapter.calls[i * 4:(i + 1) * 4] for i in range(8))] == [1, 0, 1, 1, 0, 0, 1, 0]
    assert adapter.levels[SCLK] == 0


def test_transfer_shifts_in_chip_response():
    chip = FakeMAX31865()
    chip.regs[0] = 0xC3
    spi = BitBangSPI(chip, LINES)
    with spi.transaction():
        assert spi.transfer(0x00) == 0x00  # address phase, chip outputs zeros
        assert spi.transfer(0xFF) == 0xC3


def test_transaction_deasserts_chip_select_on_error():
    adapter = LoopbackAdapter()
    spi = BitBangSPI(adapter, LINES)
    with pytest.raises(KeyError):
        with spi.transaction():
            assert adapter.levels[CS] == 0
            raise KeyError("boom")
    assert adapter.levels[CS] == 1


def test_spi_lines_must_be_distinct():
    with pytest.raises(ValueError):
        SPILines(cs=1, sclk=2, mosi=2, miso=3)


def test_bus_lease_is_exclusive_until_released():
    adapter = LoopbackAdapter()
    lease = BusLease(adapter, LINES)
    assert lease.active

    other = SPILines(cs=6, sclk=SCLK, mosi=MOSI, miso=MISO)
    with pytest.raises(BusOwnershipError):
        BusLease(adapter, other)
    # failed claim must not leave the new chip select claimed
    assert not adapter.is_claimed(6)

    lease.release()
    lease.release()
    assert not lease.active
    with pytest.raises(BusOwnershipError):
        lease.check()

    assert BusLease(adapter, other).active


def test_bus_leases_are_per_adapter():
    BusLease(LoopbackAdapter(), LINES)
    assert BusLease(LoopbackAdapter(), LINES).active
