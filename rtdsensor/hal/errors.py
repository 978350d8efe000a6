class RTDSensorError(RuntimeError):
    """Base class for errors raised by the RTD sensor driver."""


class GPIOInitError(RTDSensorError):
    """The GPIO backend could not be initialized, or a pin could not be configured."""


class BusOwnershipError(RTDSensorError):
    """A GPIO line is already owned by someone else, or the device has been reset."""
