import enum
import logging
import threading
from abc import ABC, abstractmethod

from .errors import BusOwnershipError, GPIOInitError

logger = logging.getLogger(__name__)

HIGH = 1
LOW = 0


class PinMode(enum.Enum):
    OUTPUT = "output"
    INPUT = "input"
    ALT0 = "alt0"  # hardware peripheral function, e.g. SPI0 on GPIO 9-11


class GPIOAdapter(ABC):
    """
    Minimal digital I/O boundary used by the bit-banged SPI driver.

    Backends only have to provide direction, level and release primitives.
    Pin ownership bookkeeping lives here so that every backend gets the same
    claim/unclaim behaviour.
    """
    def __init__(self):
        self._claimed = set()
        self._claim_lock = threading.Lock()

    @abstractmethod
    def set_pin_mode(self, pin, mode: PinMode):
        """Configure a pin as a digital output or input."""

    @abstractmethod
    def write_digital(self, pin, level: int):
        """Drive an output pin HIGH (1) or LOW (0)."""

    @abstractmethod
    def read_digital(self, pin) -> int:
        """Sample an input pin, returning HIGH (1) or LOW (0)."""

    @abstractmethod
    def release_pin(self, pin, mode: PinMode = PinMode.INPUT):
        """
        Hand a pin back so another consumer can use it, leaving it in `mode`:
        INPUT for an inert line, ALT0 to give it back to the hardware peripheral.
        Only called while resetting a device.
        """

    def claim(self, pins):
        """
        Marks the given pins as owned by the caller.

        Raises:
            BusOwnershipError: If any of the pins is already claimed. Nothing is
                claimed in that case.
        """
        pins = tuple(pins)
        with self._claim_lock:
            busy = [pin for pin in pins if pin in self._claimed]
            if busy:
                raise BusOwnershipError(f"GPIO pin(s) {busy} already claimed on {self!r}")
            self._claimed.update(pins)
        logger.debug(f"Claimed pins {pins}")

    def unclaim(self, pins):
        with self._claim_lock:
            for pin in pins:
                self._claimed.discard(pin)
        logger.debug(f"Released claim on pins {tuple(pins)}")

    def is_claimed(self, pin) -> bool:
        with self._claim_lock:
            return pin in self._claimed


class RPiGPIOAdapter(GPIOAdapter):
    """
    GPIO adapter backed by RPi.GPIO using BCM pin numbering.
    """
    def __init__(self):
        super().__init__()
        try:
            import RPi.GPIO as GPIO
            GPIO.setwarnings(False)
            GPIO.setmode(GPIO.BCM)
        except Exception as e:
            logger.error(f"RPi.GPIO initialization failed ({e.__class__.__name__}): {e}")
            raise GPIOInitError(f"Initialization of RPi.GPIO has failed: {e}") from e
        self._gpio = GPIO
        logger.info("RPi.GPIO adapter initialized (BCM numbering)")

    def set_pin_mode(self, pin, mode: PinMode):
        if mode is PinMode.ALT0:
            raise ValueError("RPi.GPIO cannot select alternate pin functions, use the pigpio backend")
        direction = self._gpio.OUT if mode is PinMode.OUTPUT else self._gpio.IN
        self._gpio.setup(pin, direction)

    def write_digital(self, pin, level: int):
        self._gpio.output(pin, self._gpio.HIGH if level else self._gpio.LOW)

    def read_digital(self, pin) -> int:
        return HIGH if self._gpio.input(pin) else LOW

    def release_pin(self, pin, mode: PinMode = PinMode.INPUT):
        # cleanup() puts the channel back to an input with no pull
        if mode is PinMode.ALT0:
            logger.warning(f"RPi.GPIO cannot restore ALT0 on GPIO{pin}; leaving it as an input "
                           "(hardware SPI users need the pigpio backend or a reboot)")
        self._gpio.cleanup(pin)

    def __repr__(self):
        return "RPiGPIOAdapter()"


class BlinkaGPIOAdapter(GPIOAdapter):
    """
    GPIO adapter backed by Adafruit Blinka (board + digitalio).

    Integer pins are looked up as board.D<n>; board pin objects are used as is.
    """
    def __init__(self):
        super().__init__()
        try:
            import board
            import digitalio
        except Exception as e:
            logger.error(f"Adafruit Blinka initialization failed ({e.__class__.__name__}): {e}")
            raise GPIOInitError(f"Initialization of Adafruit Blinka has failed: {e}") from e
        self._board = board
        self._digitalio = digitalio
        self._ios = {}
        logger.info("Blinka GPIO adapter initialized")

    def _board_pin(self, pin):
        if isinstance(pin, int):
            try:
                return getattr(self._board, f"D{pin}")
            except AttributeError:
                raise GPIOInitError(f"Invalid GPIO pin: D{pin} not found in board module.") from None
        return pin

    def _io(self, pin):
        io = self._ios.get(pin)
        if io is None:
            io = self._digitalio.DigitalInOut(self._board_pin(pin))
            self._ios[pin] = io
        return io

    def set_pin_mode(self, pin, mode: PinMode):
        if mode is PinMode.ALT0:
            raise ValueError("digitalio cannot select alternate pin functions, use the pigpio backend")
        io = self._io(pin)
        if mode is PinMode.OUTPUT:
            io.direction = self._digitalio.Direction.OUTPUT
        else:
            io.direction = self._digitalio.Direction.INPUT

    def write_digital(self, pin, level: int):
        self._io(pin).value = bool(level)

    def read_digital(self, pin) -> int:
        return HIGH if self._io(pin).value else LOW

    def release_pin(self, pin, mode: PinMode = PinMode.INPUT):
        # deinit() hands the line back to the kernel; busio.SPI re-muxes it when opened
        io = self._ios.pop(pin, None)
        if io is not None:
            io.deinit()

    def __repr__(self):
        return "BlinkaGPIOAdapter()"


class PigpioGPIOAdapter(GPIOAdapter):
    """
    GPIO adapter backed by the pigpio daemon.

    The only backend that can put pins back into their ALT0 function, which
    hands GPIO 9/10/11 back to the SPI0 peripheral after a reset.

    Args:
        pi: An existing pigpio.pi connection. One is opened when omitted.
        host: pigpiod host, used only when `pi` is None.
        port: pigpiod port, used only when `pi` is None.
    """
    def __init__(self, pi=None, host: str = "localhost", port: int = 8888):
        super().__init__()
        try:
            import pigpio
            if pi is None:
                pi = pigpio.pi(host, port)
        except Exception as e:
            logger.error(f"pigpio initialization failed ({e.__class__.__name__}): {e}")
            raise GPIOInitError(f"Initialization of pigpio has failed: {e}") from e
        if not pi.connected:
            logger.error(f"Could not connect to pigpiod at {host}:{port}")
            raise GPIOInitError(f"Could not connect to pigpiod at {host}:{port}")
        self._pigpio = pigpio
        self._pi = pi
        self._modes = {
            PinMode.OUTPUT: pigpio.OUTPUT,
            PinMode.INPUT: pigpio.INPUT,
            PinMode.ALT0: pigpio.ALT0,
        }
        logger.info("pigpio GPIO adapter initialized")

    def set_pin_mode(self, pin, mode: PinMode):
        self._pi.set_mode(pin, self._modes[mode])

    def write_digital(self, pin, level: int):
        self._pi.write(pin, HIGH if level else LOW)

    def read_digital(self, pin) -> int:
        return HIGH if self._pi.read(pin) else LOW

    def release_pin(self, pin, mode: PinMode = PinMode.INPUT):
        self._pi.set_mode(pin, self._modes[mode])

    def __repr__(self):
        return "PigpioGPIOAdapter()"


_BACKENDS = {
    "rpi": RPiGPIOAdapter,
    "blinka": BlinkaGPIOAdapter,
    "pigpio": PigpioGPIOAdapter,
}


def create_adapter(backend: str = "rpi") -> GPIOAdapter:
    """
    Creates a GPIO adapter by backend name.

    Args:
        backend: "rpi" for RPi.GPIO, "blinka" for Adafruit Blinka or "pigpio"
            for the pigpio daemon.

    Raises:
        ValueError: Unknown backend name.
        GPIOInitError: The backend library could not be initialized.
    """
    try:
        factory = _BACKENDS[backend.lower()]
    except KeyError:
        raise ValueError(f"Unknown GPIO backend '{backend}', expected one of {sorted(_BACKENDS)}") from None
    return factory()
