"""
Conversion of MAX31865 readings: raw ADC counts to ohms, ohms to degrees
Celsius, and the fault status byte to a FaultReport.

Nothing in here talks to hardware.
"""
import logging
import math
from dataclasses import dataclass, fields
from typing import ClassVar

logger = logging.getLogger(__name__)

# Callendar-Van Dusen coefficients (IEC 60751)
RTD_A = 3.9083e-3
RTD_B = -5.775e-7

ADC_FULL_SCALE = 32768.0  # 15-bit RTD reading

# Fault status register bits
FAULT_HIGHTHRESH = 0x80
FAULT_LOWTHRESH = 0x40
FAULT_REFINLOW = 0x20
FAULT_REFINHIGH = 0x10
FAULT_RTDINLOW = 0x08
FAULT_OVUV = 0x04


@dataclass(frozen=True)
class FaultReport:
    """Decoded fault status register. Flags are independent of each other."""
    high_threshold: bool = False
    low_threshold: bool = False
    refin_low: bool = False
    refin_high: bool = False
    rtdin_low: bool = False
    over_under_voltage: bool = False
    raw: int = 0

    _DESCRIPTIONS: ClassVar[dict] = {
        "high_threshold": "RTD High Threshold",
        "low_threshold": "RTD Low Threshold",
        "refin_low": "REFIN- > 0.85 x VBIAS",
        "refin_high": "REFIN- < 0.85 x VBIAS (FORCE- open)",
        "rtdin_low": "RTDIN- < 0.85 x VBIAS (FORCE- open)",
        "over_under_voltage": "Overvoltage/undervoltage",
    }

    def __iter__(self):
        # flags only, in register bit order
        for f in fields(self):
            if f.name != "raw":
                yield getattr(self, f.name)

    def any(self) -> bool:
        return any(self)

    def active(self) -> list:
        """Returns the descriptions of the flags that are set."""
        return [text for name, text in self._DESCRIPTIONS.items() if getattr(self, name)]

    def __str__(self):
        if not self.any():
            return "No fault"
        return ", ".join(self.active())


def decode_fault(raw: int) -> FaultReport:
    """
    Decodes a fault status byte.

    Args:
        raw: Contents of the fault status register.

    Returns:
        FaultReport: One boolean per fault bit (0x80 down to 0x04).
    """
    return FaultReport(
        high_threshold=bool(raw & FAULT_HIGHTHRESH),
        low_threshold=bool(raw & FAULT_LOWTHRESH),
        refin_low=bool(raw & FAULT_REFINLOW),
        refin_high=bool(raw & FAULT_REFINHIGH),
        rtdin_low=bool(raw & FAULT_RTDINLOW),
        over_under_voltage=bool(raw & FAULT_OVUV),
        raw=raw & 0xFF,
    )


def raw_to_resistance(raw: int, ref_resistor: float) -> float:
    """Scales a 15-bit RTD reading to ohms against the reference resistor."""
    return raw / ADC_FULL_SCALE * ref_resistor


def callendar_van_dusen(resistance: float, rtd_nominal: float) -> float:
    """
    Solves the quadratic Callendar-Van Dusen equation for temperature.

    Returns NaN when the square root argument is negative, which only
    happens for resistances far above the sensor's range.
    """
    z1 = -RTD_A
    z2 = RTD_A * RTD_A - (4 * RTD_B)
    z3 = (4 * RTD_B) / rtd_nominal
    z4 = 2 * RTD_B

    discriminant = z2 + (z3 * resistance)
    if discriminant < 0:
        return math.nan
    return (math.sqrt(discriminant) + z1) / z4


def polynomial_below_zero(resistance: float) -> float:
    """Empirical 5th order fit of temperature against resistance, for T < 0 C."""
    rpoly = resistance
    temp = -242.02
    temp += 2.2228 * rpoly
    rpoly *= resistance  # square
    temp += 2.5859e-3 * rpoly
    rpoly *= resistance  # ^3
    temp -= 4.8260e-6 * rpoly
    rpoly *= resistance  # ^4
    temp -= 2.8183e-8 * rpoly
    rpoly *= resistance  # ^5
    temp += 1.5243e-10 * rpoly
    return temp


def resistance_to_temperature(resistance: float, rtd_nominal: float) -> float:
    """
    Converts RTD resistance to temperature.

    Above 0 C the quadratic Callendar-Van Dusen equation is solved directly.
    Below 0 C the polynomial fit is used instead, it tracks the curve better
    there. Out-of-range input is not clamped.

    Args:
        resistance: Measured RTD resistance in ohms.
        rtd_nominal: Resistance at 0 C (100.0 for PT100, 1000.0 for PT1000).

    Returns:
        float: Temperature in Celsius.
    """
    temp = callendar_van_dusen(resistance, rtd_nominal)
    if math.isnan(temp) and not math.isnan(resistance):
        logger.warning(f"Quadratic RTD conversion undefined for {resistance:.2f} ohms (nominal {rtd_nominal})")

    # NaN never compares >= 0, so an undefined quadratic falls through as well
    if temp >= 0:
        return temp
    return polynomial_below_zero(resistance)
