import logging
import time

from ..conversion import FaultReport, decode_fault, raw_to_resistance, resistance_to_temperature
from . import registers
from .bitbang_spi import BitBangSPI, BusLease, SPILines
from .config_register import ConfigRegister, Wires
from .errors import GPIOInitError, RTDSensorError
from .gpio import GPIOAdapter, HIGH, LOW, PinMode, create_adapter

logger = logging.getLogger(__name__)

BIAS_SETTLE_S = 0.010  # Vbias must be on this long before a conversion
CONVERSION_S = 0.065  # one-shot conversion time with the 60Hz filter

THRESHOLD_MAX = 0x7FFF


class MAX31865:
    """
    Driver for the MAX31865 PT100/PT1000 RTD-to-digital converter on
    bit-banged SPI.

    The device owns its four GPIO lines until reset() is called. reset() must
    be called exactly once when done with the sensor (or use the instance as a
    context manager), otherwise the pins stay claimed.
    """
    def __init__(self, adapter: GPIOAdapter, cs, mosi, miso, sclk,
                 wires=Wires.TWO,
                 rtd_nominal: float = 100.0,
                 ref_resistor: float = 430.0,
                 bias_settle_s: float = BIAS_SETTLE_S,
                 conversion_s: float = CONVERSION_S):
        """
        Claims the pins, configures them and puts the chip in one-shot mode.

        Args:
            adapter: GPIO adapter the pins belong to.
            cs: Chip select pin, driven LOW for the duration of a transaction.
            mosi: Data out (SDI on the chip).
            miso: Data in (SDO on the chip).
            sclk: SPI clock.
            wires: Number of RTD wires (2, 3 or 4).
            rtd_nominal: Resistance at 0 C. 100.0 for PT100, 1000.0 for PT1000.
            ref_resistor: Value of Rref. 430.0 for PT100, 4300.0 for PT1000.
            bias_settle_s: Wait between enabling bias and starting a conversion.
            conversion_s: Wait between starting a conversion and reading it.

        Raises:
            ValueError: Invalid wire count, resistances, timings or pin set.
            BusOwnershipError: One of the pins is already claimed on the adapter.
            GPIOInitError: The pins could not be configured.
        """
        if rtd_nominal <= 0 or ref_resistor <= 0:
            raise ValueError(f"Resistances must be positive (rtd_nominal={rtd_nominal}, ref_resistor={ref_resistor})")
        if bias_settle_s < BIAS_SETTLE_S:
            raise ValueError(f"bias_settle_s must be at least {BIAS_SETTLE_S}s, got {bias_settle_s}")
        if conversion_s < CONVERSION_S:
            raise ValueError(f"conversion_s must be at least {CONVERSION_S}s, got {conversion_s}")

        self.wires = Wires(wires)
        self.rtd_nominal = rtd_nominal
        self.ref_resistor = ref_resistor
        self.bias_settle_s = bias_settle_s
        self.conversion_s = conversion_s

        self.adapter = adapter
        self.lines = SPILines(cs=cs, sclk=sclk, mosi=mosi, miso=miso)
        self._lease = BusLease(adapter, self.lines)
        self._spi = BitBangSPI(adapter, self.lines)
        self._registers = registers.RegisterAccess(self._spi)

        try:
            self._setup_pins()
            self.set_wires(self.wires)
            self.set_bias(False)
            self.set_auto_convert(False)
            self.clear_faults()
        except Exception:
            try:
                self._release_pins()
            except Exception as e:
                logger.error(f"Could not release MAX31865 pins {self.lines} after failed init "
                             f"({e.__class__.__name__}): {e}")
            finally:
                self._lease.release()
            raise
        logger.info(f"MAX31865 initialized on {self.lines} with wires={self.wires.value}, "
                    f"rtd_nominal={rtd_nominal}, ref_resistor={ref_resistor}")

    @classmethod
    def from_settings(cls, settings, adapter: GPIOAdapter = None) -> "MAX31865":
        """Builds a sensor from a Settings object, creating the GPIO adapter if needed."""
        if adapter is None:
            adapter = create_adapter(settings.gpio_backend)
        return cls(
            adapter,
            cs=settings.cs_pin,
            mosi=settings.mosi_pin,
            miso=settings.miso_pin,
            sclk=settings.sclk_pin,
            wires=settings.wires,
            rtd_nominal=settings.rtd_nominal,
            ref_resistor=settings.ref_resistor,
            bias_settle_s=settings.bias_settle_s,
            conversion_s=settings.conversion_s,
        )

    def _setup_pins(self):
        adapter, lines = self.adapter, self.lines
        try:
            adapter.set_pin_mode(lines.cs, PinMode.OUTPUT)
            adapter.write_digital(lines.cs, HIGH)  # Deselect

            adapter.set_pin_mode(lines.sclk, PinMode.OUTPUT)
            adapter.write_digital(lines.sclk, LOW)

            adapter.set_pin_mode(lines.mosi, PinMode.OUTPUT)
            adapter.set_pin_mode(lines.miso, PinMode.INPUT)
        except RTDSensorError:
            raise
        except Exception as e:
            logger.error(f"Failed to configure MAX31865 pins {lines} ({e.__class__.__name__}): {e}")
            raise GPIOInitError(f"Failed to configure pins {lines}: {e}") from e

    @property
    def _access(self) -> registers.RegisterAccess:
        self._lease.check()
        return self._registers

    # --- Configuration register ---

    @property
    def config(self) -> ConfigRegister:
        return ConfigRegister(self._access.read_register8(registers.CONFIG))

    def _update_config(self, transition) -> ConfigRegister:
        """Read-modify-write of the configuration register."""
        new = transition(self.config)
        self._access.write_register8(registers.CONFIG, new.value)
        return new

    def set_wires(self, wires):
        self._update_config(lambda c: c.with_wires(wires))

    def set_bias(self, enabled: bool):
        self._update_config(lambda c: c.with_bias(enabled))

    def set_auto_convert(self, enabled: bool):
        self._update_config(lambda c: c.with_auto_convert(enabled))

    def set_filter(self, hz: int):
        self._update_config(lambda c: c.with_filter(hz))

    def clear_faults(self):
        self._update_config(ConfigRegister.with_fault_cleared)

    # --- Measurements ---

    def read_rtd(self) -> int:
        """
        Runs a one-shot conversion and reads the RTD register.

        Blocks for bias_settle_s + conversion_s (75 ms by default).

        Returns:
            int: 15-bit raw RTD value with the fault bit removed.
        """
        self.clear_faults()
        self.set_bias(True)
        time.sleep(self.bias_settle_s)

        self._update_config(ConfigRegister.with_one_shot)
        time.sleep(self.conversion_s)

        rtd = self._access.read_register16(registers.RTD_MSB)
        if rtd & 0x01:
            logger.warning(f"Fault bit set in RTD register (0x{rtd:04X})")
        rtd >>= 1  # Remove fault bit
        logger.debug(f"Raw RTD value: {rtd}")
        return rtd

    @property
    def resistance(self) -> float:
        """RTD resistance in ohms, from a fresh conversion."""
        return raw_to_resistance(self.read_rtd(), self.ref_resistor)

    @property
    def temperature(self) -> float:
        """Temperature in Celsius, from a fresh conversion."""
        resistance = self.resistance
        temperature = resistance_to_temperature(resistance, self.rtd_nominal)
        logger.debug(f"Resistance {resistance:.3f} ohms -> {temperature:.2f}°C")
        return temperature

    # --- Faults ---

    def read_fault(self) -> int:
        """Raw fault status register. Use clear_faults() to reset it."""
        return self._access.read_register8(registers.FAULT_STATUS)

    @property
    def fault(self) -> FaultReport:
        report = decode_fault(self.read_fault())
        if report.any():
            logger.warning(f"MAX31865 Fault detected (0x{report.raw:02X}): {report}")
        return report

    def set_fault_thresholds(self, low: int, high: int):
        """
        Sets the RTD low/high fault thresholds, in the same 15-bit units as read_rtd().
        """
        for name, value in (("low", low), ("high", high)):
            if not 0 <= value <= THRESHOLD_MAX:
                raise ValueError(f"{name} threshold must be within 0..{THRESHOLD_MAX}, got {value}")
        if low > high:
            raise ValueError(f"Low threshold {low} is above high threshold {high}")
        self._access.write_register16(registers.HIGH_FAULT_MSB, high << 1)
        self._access.write_register16(registers.LOW_FAULT_MSB, low << 1)

    @property
    def fault_thresholds(self) -> tuple:
        """(low, high) fault thresholds in 15-bit RTD units."""
        data = self._access.read_registers(registers.HIGH_FAULT_MSB, 4)
        high = ((data[0] << 8) | data[1]) >> 1
        low = ((data[2] << 8) | data[3]) >> 1
        return low, high

    # --- Lifecycle ---

    def _release_pins(self):
        # clock and data go back to the SPI peripheral, chip select to a plain input
        adapter, lines = self.adapter, self.lines
        for pin in lines.shared:
            adapter.release_pin(pin, PinMode.ALT0)
        adapter.set_pin_mode(lines.cs, PinMode.INPUT)
        adapter.release_pin(lines.cs, PinMode.INPUT)

    def reset(self):
        """
        Returns the clock and data pins to their alternate (hardware SPI)
        function, chip select to an input, and gives up ownership so another
        consumer can claim the same lines.
        """
        if not self._lease.active:
            logger.warning(f"MAX31865 on {self.lines} already reset")
            return
        try:
            self._release_pins()
        finally:
            self._lease.release()
        logger.info(f"MAX31865 on {self.lines} reset, pins released")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.reset()

    def __repr__(self):
        return (f"MAX31865(cs={self.lines.cs!r}, wires={self.wires.value}, "
                f"rtd_nominal={self.rtd_nominal}, ref_resistor={self.ref_resistor})")
