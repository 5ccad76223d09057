"""Upgrade stored budget records to the current schema.

Version 1 documents are bare JSON lists written by older clients; incomes may
lack the period, holiday and adjustment fields and use the flat
``taxMethod``/``periodType`` shape, and expenses carry a single ``amount``
with a ``frequency``. Version 2 wraps each collection as
``{"schemaVersion": 2, "items": [...]}`` with entities in their current shape.
Upgrades run once, when the budget is loaded.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Final, TypeVar

from pydantic import ValidationError

from kapitalen.backend.app.models import (
    MONTHS_PER_YEAR,
    Expense,
    FreelanceIncome,
    Income,
)
from kapitalen.backend.app.models.budget import BudgetModel

from .calculators import round_half_up

_LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION: Final = 2

LEGACY_CATEGORY_MAP: Final[dict[str, str]] = {
    "bolig": "faste-utgifter",
    "transport": "faste-utgifter",
    "forsikring": "faste-utgifter",
    "mat": "mat-inne",
    "annet": "diverse",
    "faste-utgifter": "faste-utgifter",
    "abonnement": "abonnement",
    "mat-inne": "mat-inne",
    "mat-ute": "mat-ute",
    "diverse": "diverse",
}

_ModelT = TypeVar("_ModelT", bound=BudgetModel)


def schema_version(document: Any) -> int:
    """Return the schema version of a stored collection document."""

    if isinstance(document, Mapping):
        version = document.get("schemaVersion")
        return version if isinstance(version, int) else SCHEMA_VERSION
    return 1


def _items(document: Any) -> list[Any]:
    if isinstance(document, Mapping):
        items = document.get("items")
    else:
        items = document
    if not isinstance(items, Sequence) or isinstance(items, str):
        return []
    return list(items)


def migrate_income_record(record: Mapping[str, Any]) -> dict[str, Any]:
    """Fill the fields missing from older income records."""

    migrated = dict(record)
    if "period" not in migrated:
        migrated["periodType"] = migrated.get("periodType") or "fullYear"
    migrated["ferieUker"] = migrated.get("ferieUker") or "5"
    if migrated.get("isOver60") is None:
        migrated["isOver60"] = False
    if migrated.get("adjustments") is None:
        migrated["adjustments"] = []
    return migrated


def migrate_expense_record(record: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a single-amount expense into twelve monthly figures.

    Yearly amounts are spread evenly and rounded to two decimals; monthly
    amounts repeat in every slot. Retired categories are mapped onto the
    current set, with anything unknown landing in ``diverse``.
    """

    migrated = dict(record)
    migrated["category"] = LEGACY_CATEGORY_MAP.get(str(record.get("category")), "diverse")

    amounts = record.get("monthlyAmounts")
    if isinstance(amounts, Sequence) and len(amounts) == MONTHS_PER_YEAR:
        migrated.pop("amount", None)
        return migrated

    amount = record.get("amount") or 0
    frequency = record.get("frequency") or "monthly"
    if frequency == "yearly":
        monthly_value = round_half_up(amount / MONTHS_PER_YEAR * 100) / 100
    else:
        monthly_value = amount

    migrated.pop("amount", None)
    migrated["monthlyAmounts"] = [monthly_value] * MONTHS_PER_YEAR
    migrated["frequency"] = frequency
    return migrated


def _upgrade(
    document: Any,
    model: type[_ModelT],
    migrate: Callable[[Mapping[str, Any]], dict[str, Any]] | None,
    label: str,
) -> list[_ModelT]:
    upgraded: list[_ModelT] = []
    version = schema_version(document)
    for record in _items(document):
        if not isinstance(record, Mapping):
            _LOGGER.warning("Skipping malformed %s record: %r", label, record)
            continue
        try:
            if migrate is not None and version < SCHEMA_VERSION:
                prepared = migrate(record)
            else:
                prepared = record
            upgraded.append(model.model_validate(prepared))
        except ValidationError as exc:
            _LOGGER.warning(
                "Skipping %s record %r that cannot be upgraded: %s errors",
                label,
                record.get("id"),
                exc.error_count(),
            )
        except (TypeError, ValueError) as exc:
            _LOGGER.warning(
                "Skipping %s record %r that cannot be migrated: %s", label, record.get("id"), exc
            )
    return upgraded


def upgrade_incomes(document: Any) -> list[Income]:
    return _upgrade(document, Income, migrate_income_record, "income")


def upgrade_expenses(document: Any) -> list[Expense]:
    return _upgrade(document, Expense, migrate_expense_record, "expense")


def upgrade_freelance(document: Any, mva_rate: float) -> list[FreelanceIncome]:
    def _fill_mva(record: Mapping[str, Any]) -> dict[str, Any]:
        migrated = dict(record)
        if migrated.get("mva") is None:
            migrated["mva"] = (migrated.get("amount") or 0) * mva_rate
        return migrated

    return _upgrade(document, FreelanceIncome, _fill_mva, "freelance")


def dump_collection(items: Sequence[BudgetModel]) -> dict[str, Any]:
    """Serialise entities into a versioned collection document."""

    return {
        "schemaVersion": SCHEMA_VERSION,
        "items": [item.to_record() for item in items],
    }


__all__ = [
    "LEGACY_CATEGORY_MAP",
    "SCHEMA_VERSION",
    "dump_collection",
    "migrate_expense_record",
    "migrate_income_record",
    "schema_version",
    "upgrade_expenses",
    "upgrade_freelance",
    "upgrade_incomes",
]
