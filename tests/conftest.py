import time

import pytest

from rtdsensor.hal.gpio import GPIOAdapter, PinMode

CS, SCLK, MOSI, MISO = 5, 11, 10, 9


class FakeMAX31865(GPIOAdapter):
    """
    GPIO adapter wired to a simulated MAX31865.

    The chip latches data-in on the falling clock edge and presents the next
    response bit on data-out at the same time, so it answers the driver's
    bit-banged transfers the way the real part does.
    """
    def __init__(self, cs=CS, sclk=SCLK, mosi=MOSI, miso=MISO, rtd=0):
        super().__init__()
        self.cs, self.sclk, self.mosi, self.miso = cs, sclk, mosi, miso
        self.rtd = rtd  # 16-bit RTD register value loaded by a one-shot conversion
        self.regs = {addr: 0 for addr in range(8)}
        self.modes = {}
        self.levels = {}
        self.released = []
        self.calls = []
        self.transactions = []  # bytes seen on data-in, one list per chip select
        self.config_writes = []
        self.events = []
        self.fail_pins = set()
        self.conversions = 0

        self._selected = False
        self._shift_in = 0
        self._bit = 0
        self._out = 0
        self._miso_level = 0
        self._addr = None
        self._writing = False

    @property
    def fault(self):
        return self.regs[7]

    @fault.setter
    def fault(self, value):
        self.regs[7] = value

    # --- GPIOAdapter ---

    def set_pin_mode(self, pin, mode: PinMode):
        if pin in self.fail_pins:
            raise OSError(f"cannot export GPIO{pin}")
        self.calls.append(("mode", pin, mode))
        self.modes[pin] = mode

    def write_digital(self, pin, level: int):
        self.calls.append(("write", pin, level))
        previous = self.levels.get(pin)
        self.levels[pin] = level

        if pin == self.cs:
            if level == 0 and not self._selected:
                self._begin()
            elif level == 1:
                self._selected = False
        elif pin == self.sclk and self._selected and previous == 1 and level == 0:
            self._clock_falling()

    def read_digital(self, pin) -> int:
        self.calls.append(("read", pin))
        if pin == self.miso:
            return self._miso_level
        return self.levels.get(pin, 0)

    def release_pin(self, pin, mode=PinMode.INPUT):
        self.calls.append(("release", pin, mode))
        self.released.append(pin)
        self.modes.pop(pin, None)

    def released_modes(self):
        return {call[1]: call[2] for call in self.calls if call[0] == "release"}

    # --- chip model ---

    def _begin(self):
        self._selected = True
        self._shift_in = 0
        self._bit = 0
        self._out = 0
        self._addr = None
        self.transactions.append([])

    def _clock_falling(self):
        self._shift_in = (self._shift_in << 1) | (1 if self.levels.get(self.mosi) else 0)
        self._bit += 1
        self._miso_level = (self._out >> (8 - self._bit)) & 1
        if self._bit == 8:
            byte = self._shift_in
            self._shift_in = 0
            self._bit = 0
            self._byte_done(byte)

    def _byte_done(self, byte):
        self.transactions[-1].append(byte)
        if self._addr is None:
            self._writing = bool(byte & 0x80)
            self._addr = byte & 0x7F
        elif self._writing:
            self._write(self._addr, byte)
            self._addr += 1
        if not self._writing:
            self._out = self.regs.get(self._addr, 0)
            self._addr += 1

    def _write(self, addr, value):
        if addr == 0:
            self.config_writes.append(value)
            if value & 0x02:
                self.regs[7] = 0
            if value & 0x20:
                self.conversions += 1
                self.events.append(("convert", value))
                self.regs[1] = (self.rtd >> 8) & 0xFF
                self.regs[2] = self.rtd & 0xFF
            # one-shot and fault clear bits read back as 0
            self.regs[0] = value & ~0x22 & 0xFF
        elif 3 <= addr <= 6:
            self.regs[addr] = value


class LoopbackAdapter(GPIOAdapter):
    """Data-in tied to data-out, like the incubator's SPI loopback check."""
    def __init__(self, mosi=MOSI, miso=MISO):
        super().__init__()
        self.mosi, self.miso = mosi, miso
        self.levels = {}
        self.calls = []

    def set_pin_mode(self, pin, mode):
        self.calls.append(("mode", pin, mode))

    def write_digital(self, pin, level):
        self.calls.append(("write", pin, level))
        self.levels[pin] = level

    def read_digital(self, pin):
        self.calls.append(("read", pin))
        return self.levels.get(self.mosi, 0) if pin == self.miso else self.levels.get(pin, 0)

    def release_pin(self, pin, mode=PinMode.INPUT):
        self.calls.append(("release", pin, mode))


@pytest.fixture
def chip():
    return FakeMAX31865()


@pytest.fixture
def sleeps(monkeypatch, chip):
    """Replaces time.sleep, recording each wait in the chip's event log."""
    log = []

    def fake_sleep(seconds):
        log.append(seconds)
        chip.events.append(("sleep", seconds))

    monkeypatch.setattr(time, "sleep", fake_sleep)
    return log


@pytest.fixture
def sensor(chip, sleeps):
    from rtdsensor.hal.max31865 import MAX31865

    device = MAX31865(chip, cs=CS, mosi=MOSI, miso=MISO, sclk=SCLK)
    yield device
    if device._lease.active:
        device.reset()
