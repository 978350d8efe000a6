from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RTD_")

    # BCM pin numbers, defaults are the Pi's SPI0 pins with CS on GPIO5
    cs_pin: int = 5
    mosi_pin: int = 10
    miso_pin: int = 9
    sclk_pin: int = 11

    wires: int = 2
    rtd_nominal: float = Field(100.0, gt=0)  # 100.0 for PT100, 1000.0 for PT1000
    ref_resistor: float = Field(430.0, gt=0)  # 430.0 for PT100, 4300.0 for PT1000

    # chip minimums: 10 ms bias settling, 65 ms one-shot conversion
    bias_settle_s: float = Field(0.010, ge=0.010)
    conversion_s: float = Field(0.065, ge=0.065)

    gpio_backend: Literal["rpi", "blinka", "pigpio"] = "rpi"
    log_level: str = "INFO"

    @field_validator("wires")
    @classmethod
    def _check_wires(cls, v: int) -> int:
        if v not in (2, 3, 4):
            raise ValueError(f"wires must be 2, 3 or 4, got {v}")
        return v


settings = Settings()
