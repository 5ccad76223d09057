"""Pydantic models describing the tax year configuration schema."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)
from typing_extensions import Self

VACATION_CHOICES: tuple[str, ...] = ("4+1", "5")


class ConfigurationError(ValueError):
    """Raised when configuration values violate schema expectations."""


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class TrinnskattBracket(ImmutableModel):
    """Lower threshold and marginal rate of a single trinnskatt step."""

    threshold: float
    rate: float

    @model_validator(mode="after")
    def _validate_values(self) -> TrinnskattBracket:
        if self.rate < 0:
            raise ConfigurationError("Tax rates must be non-negative")
        if self.threshold < 0:
            raise ConfigurationError("Bracket thresholds must be non-negative")
        return self


class TrinnskattConfig(ImmutableModel):
    """Ordered trinnskatt schedule.

    The first entry is the zero-rate baseline starting at zero; it only marks
    the upper bound of the untaxed band and is never taxed itself.
    """

    brackets: Sequence[TrinnskattBracket]

    @field_validator("brackets", mode="before")
    @classmethod
    def _coerce_brackets(cls, value: Any) -> Sequence[Any]:
        if isinstance(value, Iterable) and not isinstance(value, (str, Mapping)):
            return tuple(value)
        raise ConfigurationError("Trinnskatt 'brackets' must be a list")

    @model_validator(mode="after")
    def _validate_schedule(self) -> TrinnskattConfig:
        if len(self.brackets) < 2:
            raise ConfigurationError("Trinnskatt requires a baseline and at least one bracket")
        baseline = self.brackets[0]
        if baseline.threshold != 0 or baseline.rate != 0:
            raise ConfigurationError("The first trinnskatt bracket must have threshold 0 and rate 0")
        previous = baseline.threshold
        for bracket in self.brackets[1:]:
            if bracket.threshold <= previous:
                raise ConfigurationError("Trinnskatt thresholds must be strictly increasing")
            previous = bracket.threshold
        return self


class WithholdingBracket(ImmutableModel):
    """Flat withholding rate applied once income exceeds ``threshold``."""

    threshold: float
    rate: float

    @model_validator(mode="after")
    def _validate_values(self) -> WithholdingBracket:
        if self.rate < 0:
            raise ConfigurationError("Withholding rates must be non-negative")
        if self.threshold < 0:
            raise ConfigurationError("Withholding thresholds must be non-negative")
        return self


class WithholdingConfig(ImmutableModel):
    """Coarse withholding brackets standing in for the official tables."""

    brackets: Sequence[WithholdingBracket]
    estimate: bool = True

    @model_validator(mode="after")
    def _validate_brackets(self) -> WithholdingConfig:
        if not self.brackets:
            raise ConfigurationError("Withholding configuration requires at least one bracket")
        thresholds = [bracket.threshold for bracket in self.brackets]
        if thresholds != sorted(thresholds) or len(set(thresholds)) != len(thresholds):
            raise ConfigurationError("Withholding thresholds must be strictly ascending")
        return self


class TrygdeavgiftConfig(ImmutableModel):
    """Social security contribution rates."""

    employment_rate: float
    self_employment_rate: float

    @model_validator(mode="after")
    def _validate_rates(self) -> TrygdeavgiftConfig:
        if self.employment_rate < 0 or self.self_employment_rate < 0:
            raise ConfigurationError("Trygdeavgift rates must be non-negative")
        return self


class FellesskattConfig(ImmutableModel):
    """Flat tax on ordinary income."""

    rate: float

    @model_validator(mode="after")
    def _validate_rate(self) -> FellesskattConfig:
        if self.rate < 0:
            raise ConfigurationError("Fellesskatt rate must be non-negative")
        return self


class DeductionConfig(ImmutableModel):
    """Personal and employment deductions reducing the fellesskatt base."""

    personfradrag: float
    minstefradrag_rate: float
    minstefradrag_max: float
    minstefradrag_min: float = 0.0

    @model_validator(mode="after")
    def _validate_amounts(self) -> DeductionConfig:
        for field_name in (
            "personfradrag",
            "minstefradrag_rate",
            "minstefradrag_max",
            "minstefradrag_min",
        ):
            if getattr(self, field_name) < 0:
                raise ConfigurationError(f"Deduction '{field_name}' must be non-negative")
        return self


class FeriepengerRates(ImmutableModel):
    """Holiday pay rates for one vacation entitlement."""

    standard: float
    over60: float

    @model_validator(mode="after")
    def _validate_rates(self) -> FeriepengerRates:
        if self.standard < 0 or self.over60 < 0:
            raise ConfigurationError("Feriepenger rates must be non-negative")
        return self


class FeriepengerConfig(ImmutableModel):
    """Holiday pay rate table keyed by vacation entitlement."""

    rates: Mapping[str, FeriepengerRates]
    age_threshold: int = 60

    @field_validator("rates", mode="before")
    @classmethod
    def _coerce_keys(cls, value: Any) -> Mapping[str, Any]:
        if isinstance(value, Mapping):
            return {str(key): val for key, val in value.items()}
        raise ConfigurationError("Feriepenger 'rates' must be a mapping")

    @model_validator(mode="after")
    def _validate_choices(self) -> FeriepengerConfig:
        missing = [choice for choice in VACATION_CHOICES if choice not in self.rates]
        if missing:
            raise ConfigurationError(
                f"Feriepenger rates missing for vacation choices: {', '.join(missing)}"
            )
        return self

    def rate_for(self, ferie_uker: str, is_over_60: bool) -> float:
        rates = self.rates[ferie_uker]
        return rates.over60 if is_over_60 else rates.standard


class MvaConfig(ImmutableModel):
    """Value added tax applied to freelance invoices."""

    rate: float

    @model_validator(mode="after")
    def _validate_rate(self) -> MvaConfig:
        if self.rate < 0:
            raise ConfigurationError("MVA rate must be non-negative")
        return self


class DefaultsConfig(ImmutableModel):
    """Fallback values used when users leave optional fields empty."""

    tax_percentage: float = 35.0
    employee_percentage: float = 100.0


class YearWarning(ImmutableModel):
    """Structured warning surfaced for a configured tax year."""

    id: str
    message_key: str
    severity: str = "info"
    applies_to: Sequence[str] = Field(default_factory=tuple)
    documentation_url: str | None = None

    @field_validator("applies_to", mode="before")
    @classmethod
    def _coerce_applies_to(cls, value: Any) -> Sequence[str]:
        if value is None:
            return ()
        if isinstance(value, Iterable):
            return tuple(str(entry) for entry in value)
        raise ConfigurationError("Warning 'applies_to' must be an iterable when provided")

    @model_validator(mode="after")
    def _validate_severity(self) -> Self:
        if self.severity not in {"info", "warning", "error"}:
            raise ConfigurationError("Warning 'severity' must be one of: info, warning, error")
        return self


class YearConfiguration(ImmutableModel):
    """Structured representation of a tax year configuration."""

    year: int
    meta: Mapping[str, Any] = Field(default_factory=dict)
    trinnskatt: TrinnskattConfig
    trygdeavgift: TrygdeavgiftConfig
    fellesskatt: FellesskattConfig
    deductions: DeductionConfig
    feriepenger: FeriepengerConfig
    withholding: WithholdingConfig
    mva: MvaConfig
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    warnings: Sequence[YearWarning] = Field(default_factory=tuple)

    @model_validator(mode="before")
    @classmethod
    def _prepare_sections(cls, data: Any) -> Mapping[str, Any]:
        if not isinstance(data, Mapping):
            raise ConfigurationError("Configuration file must define a mapping at the top level")

        prepared = dict(data)
        meta = prepared.get("meta")
        if meta is None:
            prepared["meta"] = {}
        elif not isinstance(meta, Mapping):
            raise ConfigurationError("'meta' section must be a mapping if provided")

        if prepared.get("warnings") is None:
            prepared["warnings"] = []
        if prepared.get("defaults") is None:
            prepared["defaults"] = {}

        return prepared


class TaxYearManifestEntry(ImmutableModel):
    """Entry describing a supported tax year in the manifest."""

    year: int
    filename: str | None = None
    status: str = "active"
    notes_url: str | None = None

    @computed_field
    @property
    def resolved_filename(self) -> str:
        return self.filename or f"{self.year}.yaml"


class TaxYearManifest(ImmutableModel):
    """Manifest describing the available tax year configuration files."""

    years: Sequence[TaxYearManifestEntry]

    @model_validator(mode="after")
    def _validate_years(self) -> TaxYearManifest:
        seen: set[int] = set()
        for entry in self.years:
            if entry.year in seen:
                raise ConfigurationError(
                    f"Duplicate year {entry.year} declared in the configuration manifest"
                )
            seen.add(entry.year)
        return self

    def get_entry(self, year: int) -> TaxYearManifestEntry:
        for entry in self.years:
            if entry.year == year:
                return entry
        raise KeyError(year)

    @computed_field
    @property
    def supported_years(self) -> tuple[int, ...]:
        return tuple(sorted(entry.year for entry in self.years))


__all__ = [
    "ConfigurationError",
    "DeductionConfig",
    "DefaultsConfig",
    "FellesskattConfig",
    "FeriepengerConfig",
    "FeriepengerRates",
    "ImmutableModel",
    "MvaConfig",
    "TaxYearManifest",
    "TaxYearManifestEntry",
    "TrinnskattBracket",
    "TrinnskattConfig",
    "TrygdeavgiftConfig",
    "VACATION_CHOICES",
    "ValidationError",
    "WithholdingBracket",
    "WithholdingConfig",
    "YearConfiguration",
    "YearWarning",
]
