"""
Scoring input models — what the persistence collaborator hands to the core.

``ScoringInputs`` bundles one user's trailing window of ``DailyLogEntry``
rows, corroborating ``ExternalScan`` records and the ``HouseholdContext``.
All models are frozen; the core reads them and never mutates them.

Malformed input is rejected with ``InputValidationError``: negative,
non-finite or implausibly large amounts, amounts or household sizes given
as strings or booleans, unparseable dates, log dates out of order,
non-positive household size, rows that are not objects.  Nothing is
clamped, coerced or silently repaired.  Integers are accepted for amounts
and widened to float.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

# Upper bound for a single amount (1000 litres).  Keeps every downstream sum
# of squares far from float overflow.
MAX_AMOUNT_ML = 1_000_000.0


class InputValidationError(ValueError):
    """Raised when scoring inputs are malformed.

    Attributes:
        errors: Human-readable description of every problem found.
    """

    def __init__(self, message: str, errors: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.errors = errors or [message]


def _reject_bool(v: Any) -> Any:
    # bool is an int subclass.
    if isinstance(v, bool):
        raise ValueError(f"expected a number, got boolean {v}.")
    return v


def _check_amount(v: float) -> float:
    if not math.isfinite(v) or v < 0.0:
        raise ValueError(f"amount must be a finite, non-negative number, got {v}.")
    if v > MAX_AMOUNT_ML:
        raise ValueError(f"amount {v} exceeds the {MAX_AMOUNT_ML:.0f} ml limit.")
    return float(v)


class DailyLogEntry(BaseModel):
    """One self-reported consumption entry.

    Attributes:
        log_date:  Calendar day the entry belongs to.
        amount_ml: Reported amount in ml (non-negative).
    """

    model_config = ConfigDict(frozen=True)

    log_date: date
    amount_ml: float = Field(strict=True)

    @field_validator("amount_ml", mode="before")
    @classmethod
    def not_bool(cls, v: Any) -> Any:
        return _reject_bool(v)

    @field_validator("amount_ml")
    @classmethod
    def validate_amount(cls, v: float) -> float:
        return _check_amount(v)


class ExternalScan(BaseModel):
    """Third-party-corroborated consumption evidence (e.g. a barcode scan).

    Attributes:
        scanned_at:         When the product was scanned.
        declared_amount_ml: Amount declared by the product data (non-negative).
        label:              Product name or other free-text label.
    """

    model_config = ConfigDict(frozen=True)

    scanned_at: datetime
    declared_amount_ml: float = Field(strict=True)
    label: str = ""

    @field_validator("declared_amount_ml", mode="before")
    @classmethod
    def not_bool(cls, v: Any) -> Any:
        return _reject_bool(v)

    @field_validator("declared_amount_ml")
    @classmethod
    def validate_amount(cls, v: float) -> float:
        return _check_amount(v)


class HouseholdContext(BaseModel):
    """Household size used to normalise the expected consumption range."""

    model_config = ConfigDict(frozen=True)

    size: int = Field(default=1, strict=True)

    @field_validator("size", mode="before")
    @classmethod
    def not_bool(cls, v: Any) -> Any:
        return _reject_bool(v)

    @field_validator("size")
    @classmethod
    def positive_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"household size must be >= 1, got {v}.")
        return v


class ScoringInputs(BaseModel):
    """Everything the scoring core needs for one user.

    Attributes:
        daily_logs:  Log entries in non-decreasing date order.  Several
                     entries may share a date.
        scans:       External scans from the same window.
        household:   Household context.
        window_days: Length of the trailing window the data covers.
    """

    model_config = ConfigDict(frozen=True)

    daily_logs: tuple[DailyLogEntry, ...] = ()
    scans: tuple[ExternalScan, ...] = ()
    household: HouseholdContext = HouseholdContext()
    window_days: int = Field(default=30, strict=True)

    @field_validator("window_days", mode="before")
    @classmethod
    def window_not_bool(cls, v: Any) -> Any:
        return _reject_bool(v)

    @field_validator("window_days")
    @classmethod
    def positive_window(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"window_days must be >= 1, got {v}.")
        return v

    @model_validator(mode="after")
    def logs_in_date_order(self) -> "ScoringInputs":
        for prev, curr in zip(self.daily_logs, self.daily_logs[1:]):
            if curr.log_date < prev.log_date:
                raise ValueError(
                    f"daily_logs must be in ascending date order: "
                    f"{curr.log_date} follows {prev.log_date}."
                )
        return self

    @property
    def amounts(self) -> list[float]:
        """Logged amounts in entry order."""
        return [entry.amount_ml for entry in self.daily_logs]

    @classmethod
    def build(cls, **kwargs: Any) -> "ScoringInputs":
        """Construct and validate, raising ``InputValidationError`` on failure."""
        try:
            return cls(**kwargs)
        except ValidationError as exc:
            raise _to_input_error(exc) from exc

    @classmethod
    def from_raw(
        cls,
        payload: Mapping[str, Any],
        window_days: Optional[int] = None,
    ) -> "ScoringInputs":
        """Build inputs from the plain fetch payload.

        Accepts the persistence boundary shape::

            {
              "daily_logs": [{"date": "2024-01-01", "amount": 42.0}, ...],
              "scans": [{"date": "2024-01-01T10:00:00Z", "amount": 50.0, "label": "Chips"}],
              "household_size": 3,
            }

        A missing or null ``household_size`` defaults to 1.

        Raises:
            InputValidationError: If any field is missing or malformed.
        """
        if not isinstance(payload, Mapping):
            raise InputValidationError(
                f"Scoring payload must be an object, got {type(payload).__name__}."
            )
        try:
            logs = [
                DailyLogEntry(log_date=row["date"], amount_ml=row["amount"])
                for row in _rows(payload, "daily_logs")
            ]
            scans = [
                ExternalScan(
                    scanned_at=row["date"],
                    declared_amount_ml=row["amount"],
                    label=row.get("label") or "",
                )
                for row in _rows(payload, "scans")
            ]
        except KeyError as exc:
            raise InputValidationError(f"Missing required field {exc} in input row.") from exc
        except ValidationError as exc:
            raise _to_input_error(exc) from exc

        household_size = payload.get("household_size")
        kwargs: dict[str, Any] = {
            "daily_logs": tuple(logs),
            "scans": tuple(scans),
            "household": {"size": 1 if household_size is None else household_size},
        }
        if window_days is not None:
            kwargs["window_days"] = window_days
        elif payload.get("window_days") is not None:
            kwargs["window_days"] = payload["window_days"]
        return cls.build(**kwargs)


def _rows(payload: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    """Return ``payload[key]`` as a list of row objects, rejecting anything else."""
    rows = payload.get(key) or []
    if not isinstance(rows, (list, tuple)):
        raise InputValidationError(f"{key}: expected a list, got {type(rows).__name__}.")
    for i, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise InputValidationError(
                f"{key}.{i}: expected an object, got {type(row).__name__}."
            )
    return list(rows)


def _to_input_error(exc: ValidationError) -> InputValidationError:
    errors = [
        f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
        for err in exc.errors()
    ]
    return InputValidationError(
        f"Invalid scoring input ({len(errors)} error(s)): {'; '.join(errors)}",
        errors=errors,
    )
