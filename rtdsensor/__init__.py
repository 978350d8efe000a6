import logging

from .conversion import FaultReport, decode_fault, raw_to_resistance, resistance_to_temperature
from .hal import (
    MAX31865,
    BlinkaGPIOAdapter,
    BusOwnershipError,
    ConfigRegister,
    GPIOAdapter,
    GPIOInitError,
    PigpioGPIOAdapter,
    PinMode,
    RPiGPIOAdapter,
    RTDSensorError,
    Wires,
    create_adapter,
)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level=None):
    """
    Configures the root logger for scripts using the driver.

    Args:
        level: A logging level, either as int or name (e.g. "DEBUG").
            Defaults to settings.log_level (RTD_LOG_LEVEL).
    """
    if level is None:
        from . import settings as settings_module
        level = settings_module.settings.log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT)
