from __future__ import annotations

import secrets
from typing import Protocol

from siteops.core.config import Settings, get_settings


class OtpGenerator(Protocol):
    def generate(self) -> str: ...


class FixedOtpGenerator:
    """Always hands out the same code. Dev and test setups only."""

    def __init__(self, code: str):
        self.code = code

    def generate(self) -> str:
        return self.code


class RandomOtpGenerator:
    def __init__(self, length: int = 6):
        self.length = length

    def generate(self) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(self.length))


def get_otp_generator(settings: Settings | None = None) -> OtpGenerator:
    settings = settings or get_settings()
    if settings.otp_mode == "fixed":
        return FixedOtpGenerator(settings.otp_fixed_code)
    if settings.otp_mode == "random":
        return RandomOtpGenerator(settings.otp_length)
    raise ValueError(f"unsupported otp mode: {settings.otp_mode}")
