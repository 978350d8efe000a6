import enum
from dataclasses import dataclass

# CONFIG register bit positions
BIAS = 0x80  # Vbias on
MODE_AUTO = 0x40  # auto (1) or one-shot (0) conversion mode
ONE_SHOT = 0x20  # trigger a one-shot conversion, self-clearing
THREE_WIRE = 0x10  # 3-wire (1) or 2/4-wire (0)
FAULT_CYCLE = 0x0C  # fault detection cycle control, bits 3:2
FAULT_CLEAR = 0x02  # fault status clear, self-clearing
FILTER_50HZ = 0x01  # 50Hz (1) or 60Hz (0) notch filter

# Bits dropped when clearing faults: one-shot and the fault detection cycle.
_FAULT_CLEAR_MASK = ONE_SHOT | FAULT_CYCLE


class Wires(enum.IntEnum):
    TWO = 2
    THREE = 3
    FOUR = 4


@dataclass(frozen=True)
class ConfigRegister:
    """
    Snapshot of the 8-bit configuration register.

    Transitions never touch the chip; they return a new snapshot whose `value`
    is then written back as a whole byte.
    """
    value: int = 0

    def __post_init__(self):
        if not 0 <= self.value <= 0xFF:
            raise ValueError(f"Configuration register value out of range: {self.value}")

    def _with(self, mask: int, enabled: bool) -> "ConfigRegister":
        if enabled:
            return ConfigRegister(self.value | mask)
        return ConfigRegister(self.value & ~mask & 0xFF)

    @property
    def bias(self) -> bool:
        return bool(self.value & BIAS)

    @property
    def auto_convert(self) -> bool:
        return bool(self.value & MODE_AUTO)

    @property
    def one_shot(self) -> bool:
        return bool(self.value & ONE_SHOT)

    @property
    def three_wire(self) -> bool:
        return bool(self.value & THREE_WIRE)

    @property
    def fault_cycle(self) -> int:
        return (self.value & FAULT_CYCLE) >> 2

    @property
    def fault_clear(self) -> bool:
        return bool(self.value & FAULT_CLEAR)

    @property
    def filter_hz(self) -> int:
        return 50 if self.value & FILTER_50HZ else 60

    def with_wires(self, wires) -> "ConfigRegister":
        # 2-wire and 4-wire share the same setting
        return self._with(THREE_WIRE, Wires(wires) is Wires.THREE)

    def with_bias(self, enabled: bool) -> "ConfigRegister":
        return self._with(BIAS, enabled)

    def with_auto_convert(self, enabled: bool) -> "ConfigRegister":
        return self._with(MODE_AUTO, enabled)

    def with_fault_cleared(self) -> "ConfigRegister":
        return ConfigRegister((self.value & ~_FAULT_CLEAR_MASK & 0xFF) | FAULT_CLEAR)

    def with_one_shot(self) -> "ConfigRegister":
        return self._with(ONE_SHOT, True)

    def with_filter(self, hz: int) -> "ConfigRegister":
        if hz not in (50, 60):
            raise ValueError(f"Notch filter must be 50 or 60 Hz, got {hz}")
        return self._with(FILTER_50HZ, hz == 50)

    def __str__(self):
        return f"0x{self.value:02X}"
