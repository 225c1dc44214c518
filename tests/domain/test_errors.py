"""Tests for the engine error taxonomy."""

from __future__ import annotations

import pytest

from replenishment.domain.errors import (
    BATCH_CANCELLED,
    BATCH_TIMEOUT,
    BatchTimeoutError,
    CalculationError,
    CalculationFailedError,
    InsufficientDataError,
    InvalidConfigurationError,
    NoProductsFoundError,
)


@pytest.mark.parametrize(
    ("cls", "code"),
    [
        (InsufficientDataError, "INSUFFICIENT_DATA"),
        (InvalidConfigurationError, "INVALID_CONFIGURATION"),
        (CalculationFailedError, "CALCULATION_FAILED"),
        (NoProductsFoundError, "NO_PRODUCTS_FOUND"),
        (BatchTimeoutError, BATCH_TIMEOUT),
    ],
)
def test_codes(cls, code):
    err = cls("boom")
    assert isinstance(err, CalculationError)
    assert err.code == code
    assert str(err) == "boom"


def test_code_override_per_instance():
    err = BatchTimeoutError("stopped", code=BATCH_CANCELLED)

    assert err.code == BATCH_CANCELLED
    assert BatchTimeoutError("late").code == BATCH_TIMEOUT


def test_to_dict():
    err = InsufficientDataError("too short", details={"days_with_sales": 3})

    assert err.to_dict() == {
        "code": "INSUFFICIENT_DATA",
        "message": "too short",
        "details": {"days_with_sales": 3},
    }
    assert CalculationError("x").details == {}
