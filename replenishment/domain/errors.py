"""Error taxonomy for coverage and purchase calculations.

Every error carries a machine-readable ``code``, a human ``message`` and
optional structured ``details`` so batch runs can report failures per SKU.
"""

from __future__ import annotations

from typing import Any

INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
CALCULATION_FAILED = "CALCULATION_FAILED"
NO_PRODUCTS_FOUND = "NO_PRODUCTS_FOUND"
BATCH_TIMEOUT = "BATCH_TIMEOUT"
BATCH_CANCELLED = "BATCH_CANCELLED"


class CalculationError(Exception):
    """Base class for all engine errors."""

    code = CALCULATION_FAILED

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for batch reports and logs."""
        return {"code": self.code, "message": self.message, "details": self.details}


class InsufficientDataError(CalculationError):
    """Product is unknown or its history is too short to forecast."""

    code = INSUFFICIENT_DATA


class InvalidConfigurationError(CalculationError):
    """Configuration failed validation. Raised when a calculator is built."""

    code = INVALID_CONFIGURATION


class CalculationFailedError(CalculationError):
    """Internal arithmetic produced a non-finite value where one is required."""

    code = CALCULATION_FAILED


class NoProductsFoundError(CalculationError):
    """Requested SKU does not exist in the product catalogue."""

    code = NO_PRODUCTS_FOUND


class BatchTimeoutError(CalculationError):
    """SKU was abandoned because the batch deadline passed or the batch was cancelled."""

    code = BATCH_TIMEOUT
