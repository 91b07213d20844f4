from __future__ import annotations

from typing import Optional


class CidrSweepError(Exception):
    """Base class for fatal sweep errors."""

    error_code = "SWEEP_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigurationError(CidrSweepError):
    """Invalid sweep settings, detected before any probe is dispatched."""

    error_code = "CONFIG_ERROR"

    def __init__(self, message: str, config_key: Optional[str] = None) -> None:
        super().__init__(message)
        self.config_key = config_key


class EnumerationFault(CidrSweepError):
    """The address enumerator failed while the sweep was running."""

    error_code = "ENUMERATION_FAULT"

    def __init__(self, message: str, cidr: Optional[str] = None) -> None:
        super().__init__(message)
        self.cidr = cidr
