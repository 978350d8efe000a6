from .config_register import ConfigRegister, Wires
from .errors import BusOwnershipError, GPIOInitError, RTDSensorError
from .gpio import BlinkaGPIOAdapter, GPIOAdapter, PigpioGPIOAdapter, PinMode, RPiGPIOAdapter, create_adapter
from .max31865 import MAX31865
