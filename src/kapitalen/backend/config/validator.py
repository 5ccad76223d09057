"""Utilities for validating year configuration data and surfacing issues."""

from __future__ import annotations

import argparse
from typing import Iterable, Sequence

from .year_config import (
    DeductionConfig,
    FeriepengerConfig,
    TrinnskattConfig,
    WithholdingConfig,
    YearConfiguration,
    YearWarning,
    available_years,
    load_year_configuration,
)


def _format_scope(scope: str, message: str) -> str:
    return f"{scope}: {message}"


def _validate_rate(scope: str, label: str, value: float) -> list[str]:
    if value < 0 or value > 1:
        return [_format_scope(scope, f"{label} rate {value} must be between 0 and 1")]
    return []


def _validate_trinnskatt(config: TrinnskattConfig) -> list[str]:
    errors: list[str] = []

    previous_rate = 0.0
    for index, bracket in enumerate(config.brackets):
        errors.extend(_validate_rate("trinnskatt.brackets", f"bracket {index}", bracket.rate))
        if bracket.rate < previous_rate:
            errors.append(
                _format_scope(
                    "trinnskatt.brackets",
                    f"bracket {index} rate {bracket.rate} is lower than the bracket below it",
                )
            )
        previous_rate = bracket.rate

    return errors


def _validate_withholding(config: WithholdingConfig) -> list[str]:
    errors: list[str] = []

    for index, bracket in enumerate(config.brackets):
        errors.extend(
            _validate_rate("withholding.brackets", f"bracket {index}", bracket.rate)
        )

    if config.brackets and config.brackets[0].threshold != 0:
        errors.append(
            _format_scope(
                "withholding.brackets",
                "the lowest bracket should start at 0 so every income has a fallback rate",
            )
        )

    return errors


def _validate_deductions(config: DeductionConfig) -> list[str]:
    errors: list[str] = []

    errors.extend(
        _validate_rate("deductions", "minstefradrag", config.minstefradrag_rate)
    )
    if config.minstefradrag_min > config.minstefradrag_max:
        errors.append(
            _format_scope(
                "deductions",
                "minstefradrag minimum cannot exceed the maximum",
            )
        )

    return errors


def _validate_feriepenger(config: FeriepengerConfig) -> list[str]:
    errors: list[str] = []

    for choice, rates in sorted(config.rates.items()):
        scope = f"feriepenger.rates.{choice}"
        errors.extend(_validate_rate(scope, "standard", rates.standard))
        errors.extend(_validate_rate(scope, "over60", rates.over60))
        if rates.over60 < rates.standard:
            errors.append(
                _format_scope(scope, "over60 rate should not be lower than the standard rate")
            )

    return errors


def _validate_warnings(warnings: Iterable[YearWarning]) -> list[str]:
    errors: list[str] = []
    seen_ids: set[str] = set()

    for warning in warnings:
        if warning.id in seen_ids:
            errors.append(
                _format_scope(
                    "warnings",
                    f"duplicate warning identifier '{warning.id}' detected",
                )
            )
        else:
            seen_ids.add(warning.id)

        for target in warning.applies_to:
            if not target.strip():
                errors.append(
                    _format_scope(
                        f"warnings.{warning.id}",
                        "applies_to entries must be non-empty strings",
                    )
                )

        if warning.documentation_url and not warning.documentation_url.startswith(
            ("http://", "https://")
        ):
            errors.append(
                _format_scope(
                    f"warnings.{warning.id}",
                    "documentation URL must be absolute",
                )
            )

    return errors


def validate_year_configuration(config: YearConfiguration) -> list[str]:
    """Return a list of validation issues for the provided configuration."""

    errors: list[str] = []

    errors.extend(_validate_trinnskatt(config.trinnskatt))
    errors.extend(
        _validate_rate("trygdeavgift", "employment", config.trygdeavgift.employment_rate)
    )
    errors.extend(
        _validate_rate(
            "trygdeavgift", "self-employment", config.trygdeavgift.self_employment_rate
        )
    )
    errors.extend(_validate_rate("fellesskatt", "fellesskatt", config.fellesskatt.rate))
    errors.extend(_validate_deductions(config.deductions))
    errors.extend(_validate_feriepenger(config.feriepenger))
    errors.extend(_validate_withholding(config.withholding))
    errors.extend(_validate_rate("mva", "mva", config.mva.rate))

    defaults = config.defaults
    if not 0 <= defaults.tax_percentage <= 100:
        errors.append(
            _format_scope("defaults", "tax_percentage must be between 0 and 100")
        )
    if not 0 <= defaults.employee_percentage <= 100:
        errors.append(
            _format_scope("defaults", "employee_percentage must be between 0 and 100")
        )

    errors.extend(_validate_warnings(config.warnings))

    return errors


def validate_all_years(years: Sequence[int] | None = None) -> dict[int, list[str]]:
    """Validate all configured years and return issues keyed by year."""

    targets = years or available_years()
    results: dict[int, list[str]] = {}

    for year in targets:
        config = load_year_configuration(year)
        results[int(year)] = validate_year_configuration(config)

    return results


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Validate configured tax years and report issues helpful to contributors."
        )
    )
    parser.add_argument(
        "years",
        nargs="*",
        type=int,
        help="Specific years to validate (defaults to all configured years)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    years = args.years or available_years()

    if not years:
        parser.print_help()
        return 1

    exit_code = 0

    for year in years:
        try:
            config = load_year_configuration(year)
        except FileNotFoundError as error:
            print(f"[{year}] failed to load configuration: {error}")
            exit_code = 1
            continue

        issues = validate_year_configuration(config)
        if issues:
            exit_code = 1
            print(f"[{year}] {len(issues)} issue(s) detected:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print(f"[{year}] OK")

    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
