"""Immutable value objects returned by the calculators and validators."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation predicate with a human-readable reason."""

    valid: bool
    error: str | None = None

    def __bool__(self) -> bool:
        return self.valid

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"valid": self.valid}
        if self.error:
            payload["error"] = self.error
        return payload


VALID = ValidationResult(valid=True)


def invalid(message: str) -> ValidationResult:
    """Return a failed :class:`ValidationResult` carrying ``message``."""

    return ValidationResult(valid=False, error=message)


@dataclass(frozen=True)
class TrinnskattShare:
    """Slice of income taxed within a single trinnskatt bracket."""

    bracket: int
    taxable_amount: float
    amount: float


@dataclass(frozen=True)
class TrinnskattResult:
    total: float
    breakdown: tuple[TrinnskattShare, ...] = ()


@dataclass(frozen=True)
class WithholdingResult:
    gross_income: float
    withheld: float
    tax_percent: float

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TaxBreakdown:
    """Apparent tax of a single income viewed in isolation."""

    gross_income: float
    trygdeavgift: float
    trinnskatt: float
    fellesskatt: float
    total_tax: float
    net_income: float
    effective_rate: float

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CombinedTaxBreakdown:
    """Authoritative tax liability across every income source."""

    lonn_gross: float
    minstefradrag: float
    enk_gross: float
    enk_expenses: float
    enk_net: float
    total_personinntekt: float
    trygdeavgift_lonn: float
    trygdeavgift_enk: float
    trinnskatt: float
    personfradrag: float
    alminnelig_inntekt: float
    fellesskatt: float
    total_tax: float
    skatt_fra_lonn: float
    skatt_fra_oppdrag: float
    skatt_fra_kombinert: float
    skattetrekk: float
    difference: float
    total_feriepenger: float
    net_income: float
    effective_rate: float
    trinnskatt_breakdown: tuple[TrinnskattShare, ...] = field(default_factory=tuple)

    @property
    def is_refund(self) -> bool:
        return self.difference > 0

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["trinnskatt_breakdown"] = [asdict(share) for share in self.trinnskatt_breakdown]
        return payload


__all__ = [
    "CombinedTaxBreakdown",
    "TaxBreakdown",
    "TrinnskattResult",
    "TrinnskattShare",
    "VALID",
    "ValidationResult",
    "WithholdingResult",
    "invalid",
]
