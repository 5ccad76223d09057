"""Budget aggregate: entity collections, CRUD operations and derived metrics.

A :class:`BudgetService` is an explicit context object owned by its caller.
Every mutation validates its input first, replaces the affected entity with a
new frozen instance and then notifies the registered on-change observers.
Persistence is one such observer (:class:`BudgetPersistence`).
"""

from __future__ import annotations

import logging
import math
from threading import RLock
from typing import Any, Callable, Iterable, Sequence

from pydantic import ValidationError

from kapitalen.backend.app.models import (
    EXPENSE_CATEGORIES,
    MONTHS_PER_YEAR,
    TAX_METHODS,
    CombinedTaxBreakdown,
    Expense,
    FreelanceIncome,
    Income,
    IncomeAdjustment,
    format_validation_error,
)
from kapitalen.backend.config.year_config import YearConfiguration

from .calculators import (
    CombinedTaxInput,
    calculate_combined_tax,
    calculate_tax,
    get_monthly_income,
)
from .calculators.utils import resolve_configuration
from .migrations import dump_collection, upgrade_expenses, upgrade_freelance, upgrade_incomes
from .storage import STORAGE_KEYS, KeyValueStore
from .validation import (
    validate_adjustment,
    validate_amount,
    validate_expense,
    validate_income,
    validate_non_empty_string,
)

_LOGGER = logging.getLogger(__name__)

Observer = Callable[["BudgetService", str], None]

COLLECTIONS: tuple[str, ...] = tuple(STORAGE_KEYS)


class NotFoundError(KeyError):
    """Raised when an id does not match any entity in the budget."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Resource not found"


def _raise_if_invalid(result: Any) -> None:
    if not result:
        raise ValueError(result.error)


def _build(factory: Callable[[], Any]) -> Any:
    try:
        return factory()
    except ValidationError as exc:
        raise ValueError(format_validation_error(exc, prefix="Invalid budget entry")) from exc


def _replace(
    items: Sequence[Any], item_id: str, replacement: Any | None, label: str
) -> tuple[Any, ...]:
    for index, existing in enumerate(items):
        if existing.id == item_id:
            if replacement is None:
                return tuple(items[:index]) + tuple(items[index + 1 :])
            return tuple(items[:index]) + (replacement,) + tuple(items[index + 1 :])
    raise NotFoundError(f"Unknown {label} id: {item_id}")


class BudgetService:
    """In-memory budget of incomes, freelance invoices and expenses."""

    def __init__(
        self,
        *,
        config: YearConfiguration | None = None,
        incomes: Iterable[Income] = (),
        freelance_incomes: Iterable[FreelanceIncome] = (),
        expenses: Iterable[Expense] = (),
        enk_expenses: float = 0.0,
        tax_method: str = "tabelltrekk",
        tax_percentage: float | None = None,
    ) -> None:
        self._config = resolve_configuration(config)
        self._lock = RLock()
        self._observers: list[Observer] = []
        self._incomes: tuple[Income, ...] = tuple(incomes)
        self._freelance: tuple[FreelanceIncome, ...] = tuple(freelance_incomes)
        self._expenses: tuple[Expense, ...] = tuple(expenses)
        self._enk_expenses = max(0.0, float(enk_expenses))
        self._tax_method = tax_method if tax_method in TAX_METHODS else "tabelltrekk"
        if tax_percentage is None:
            tax_percentage = self._config.defaults.tax_percentage
        self._tax_percentage = min(100.0, max(0.0, float(tax_percentage)))

    @classmethod
    def load(
        cls, store: KeyValueStore, *, config: YearConfiguration | None = None
    ) -> BudgetService:
        """Rebuild a budget from ``store``, upgrading older record shapes."""

        configuration = resolve_configuration(config)

        tax_method = store.load(STORAGE_KEYS["tax_method"], "tabelltrekk")
        tax_percentage = store.load(
            STORAGE_KEYS["tax_percentage"], configuration.defaults.tax_percentage
        )
        enk_expenses = store.load(STORAGE_KEYS["enk_expenses"], 0.0)
        if not validate_amount(enk_expenses):
            _LOGGER.warning("Ignoring stored ENK expenses %r", enk_expenses)
            enk_expenses = 0.0
        if not isinstance(tax_percentage, (int, float)) or isinstance(tax_percentage, bool):
            _LOGGER.warning("Ignoring stored tax percentage %r", tax_percentage)
            tax_percentage = configuration.defaults.tax_percentage

        return cls(
            config=configuration,
            incomes=upgrade_incomes(store.load(STORAGE_KEYS["incomes"], [])),
            freelance_incomes=upgrade_freelance(
                store.load(STORAGE_KEYS["freelance"], []), configuration.mva.rate
            ),
            expenses=upgrade_expenses(store.load(STORAGE_KEYS["expenses"], [])),
            enk_expenses=enk_expenses,
            tax_method=tax_method if isinstance(tax_method, str) else "tabelltrekk",
            tax_percentage=tax_percentage,
        )

    # Observers -----------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer``; the returned callable unsubscribes it."""

        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _notify(self, collection: str) -> None:
        for observer in list(self._observers):
            observer(self, collection)

    def export_collection(self, collection: str) -> Any:
        """Return the storable document for ``collection``."""

        with self._lock:
            if collection == "incomes":
                return dump_collection(self._incomes)
            if collection == "freelance":
                return dump_collection(self._freelance)
            if collection == "expenses":
                return dump_collection(self._expenses)
            if collection == "enk_expenses":
                return self._enk_expenses
            if collection == "tax_method":
                return self._tax_method
            if collection == "tax_percentage":
                return self._tax_percentage
        raise KeyError(f"Unknown collection: {collection}")

    # State ---------------------------------------------------------------

    @property
    def config(self) -> YearConfiguration:
        return self._config

    @property
    def incomes(self) -> tuple[Income, ...]:
        return self._incomes

    @property
    def freelance_incomes(self) -> tuple[FreelanceIncome, ...]:
        return self._freelance

    @property
    def expenses(self) -> tuple[Expense, ...]:
        return self._expenses

    @property
    def enk_expenses(self) -> float:
        return self._enk_expenses

    @property
    def tax_method(self) -> str:
        return self._tax_method

    @property
    def tax_percentage(self) -> float:
        return self._tax_percentage

    def set_enk_expenses(self, amount: float) -> None:
        """Set the yearly ENK expense total; negative amounts clamp to zero."""

        if (
            isinstance(amount, bool)
            or not isinstance(amount, (int, float))
            or not math.isfinite(amount)
        ):
            raise ValueError("ENK expenses: Amount must be a valid number.")
        with self._lock:
            self._enk_expenses = max(0.0, float(amount))
        self._notify("enk_expenses")

    def set_tax_method(self, method: str) -> None:
        if method not in TAX_METHODS:
            raise ValueError("Invalid tax method.")
        with self._lock:
            self._tax_method = method
        self._notify("tax_method")

    def set_tax_percentage(self, percentage: float) -> None:
        """Set the global withholding percentage, clamped into ``[0, 100]``."""

        if (
            isinstance(percentage, bool)
            or not isinstance(percentage, (int, float))
            or not math.isfinite(percentage)
        ):
            raise ValueError("Tax percentage: Percentage must be a valid number.")
        with self._lock:
            self._tax_percentage = min(100.0, max(0.0, float(percentage)))
        self._notify("tax_percentage")

    def clear(self) -> None:
        """Reset every collection and setting to its default."""

        with self._lock:
            self._incomes = ()
            self._freelance = ()
            self._expenses = ()
            self._enk_expenses = 0.0
            self._tax_method = "tabelltrekk"
            self._tax_percentage = self._config.defaults.tax_percentage
        for collection in COLLECTIONS:
            self._notify(collection)

    # Incomes -------------------------------------------------------------

    def get_income(self, income_id: str) -> Income:
        for income in self._incomes:
            if income.id == income_id:
                return income
        raise NotFoundError(f"Unknown income id: {income_id}")

    def _income_from_form(
        self,
        form: dict[str, Any],
        *,
        income_id: str | None,
        adjustments: tuple[IncomeAdjustment, ...],
    ) -> Income:
        _raise_if_invalid(validate_income(form))
        return _build(
            lambda: Income.from_form(
                **form,
                id=income_id,
                adjustments=adjustments,
                default_tax_percentage=self._config.defaults.tax_percentage,
            )
        )

    def add_income(
        self,
        name: str,
        yearly_amount: float,
        employee_percentage: float,
        tax_method: str = "tabelltrekk",
        custom_tax_percentage: float | None = None,
        trekkprosent: float | None = None,
        period_type: str = "fullYear",
        start_date: str | None = None,
        end_date: str | None = None,
        ferie_uker: str = "5",
        is_over_60: bool = False,
    ) -> Income:
        form = {
            "name": name,
            "yearly_amount": yearly_amount,
            "employee_percentage": employee_percentage,
            "tax_method": tax_method,
            "custom_tax_percentage": custom_tax_percentage,
            "trekkprosent": trekkprosent,
            "period_type": period_type,
            "start_date": start_date,
            "end_date": end_date,
            "ferie_uker": ferie_uker,
            "is_over_60": is_over_60,
        }
        income = self._income_from_form(form, income_id=None, adjustments=())
        with self._lock:
            self._incomes = self._incomes + (income,)
        self._notify("incomes")
        return income

    def update_income(
        self,
        income_id: str,
        name: str,
        yearly_amount: float,
        employee_percentage: float,
        tax_method: str = "tabelltrekk",
        custom_tax_percentage: float | None = None,
        trekkprosent: float | None = None,
        period_type: str = "fullYear",
        start_date: str | None = None,
        end_date: str | None = None,
        ferie_uker: str = "5",
        is_over_60: bool = False,
    ) -> Income:
        """Replace an income's fields; its adjustments are kept."""

        form = {
            "name": name,
            "yearly_amount": yearly_amount,
            "employee_percentage": employee_percentage,
            "tax_method": tax_method,
            "custom_tax_percentage": custom_tax_percentage,
            "trekkprosent": trekkprosent,
            "period_type": period_type,
            "start_date": start_date,
            "end_date": end_date,
            "ferie_uker": ferie_uker,
            "is_over_60": is_over_60,
        }
        with self._lock:
            existing = self.get_income(income_id)
            income = self._income_from_form(
                form, income_id=income_id, adjustments=existing.adjustments
            )
            self._incomes = _replace(self._incomes, income_id, income, "income")
        self._notify("incomes")
        return income

    def remove_income(self, income_id: str) -> None:
        with self._lock:
            self._incomes = _replace(self._incomes, income_id, None, "income")
        self._notify("incomes")

    # Adjustments ---------------------------------------------------------

    def add_adjustment(
        self,
        income_id: str,
        adjustment_type: str,
        amount: float,
        month: int,
        description: str | None = None,
        affects_feriepenger: bool | None = None,
    ) -> IncomeAdjustment:
        """Attach an adjustment; the holiday pay flag defaults by type."""

        payload: dict[str, Any] = {
            "type": adjustment_type,
            "amount": amount,
            "month": month,
            "description": description,
        }
        _raise_if_invalid(validate_adjustment(payload))
        if affects_feriepenger is not None:
            payload["affects_feriepenger"] = affects_feriepenger
        adjustment = _build(lambda: IncomeAdjustment.model_validate(payload))

        with self._lock:
            income = self.get_income(income_id)
            updated = income.model_copy(
                update={"adjustments": income.adjustments + (adjustment,)}
            )
            self._incomes = _replace(self._incomes, income_id, updated, "income")
        self._notify("incomes")
        return adjustment

    def update_adjustment(
        self,
        income_id: str,
        adjustment_id: str,
        adjustment_type: str,
        amount: float,
        month: int,
        description: str | None = None,
        affects_feriepenger: bool | None = None,
    ) -> IncomeAdjustment:
        """Replace an adjustment, keeping its holiday pay flag unless given."""

        payload: dict[str, Any] = {
            "type": adjustment_type,
            "amount": amount,
            "month": month,
            "description": description,
        }
        _raise_if_invalid(validate_adjustment(payload))

        with self._lock:
            income = self.get_income(income_id)
            existing = next(
                (item for item in income.adjustments if item.id == adjustment_id), None
            )
            if existing is None:
                raise NotFoundError(f"Unknown adjustment id: {adjustment_id}")
            payload["id"] = adjustment_id
            payload["affects_feriepenger"] = (
                existing.affects_feriepenger
                if affects_feriepenger is None
                else affects_feriepenger
            )
            adjustment = _build(lambda: IncomeAdjustment.model_validate(payload))
            adjustments = _replace(income.adjustments, adjustment_id, adjustment, "adjustment")
            updated = income.model_copy(update={"adjustments": adjustments})
            self._incomes = _replace(self._incomes, income_id, updated, "income")
        self._notify("incomes")
        return adjustment

    def remove_adjustment(self, income_id: str, adjustment_id: str) -> None:
        with self._lock:
            income = self.get_income(income_id)
            adjustments = _replace(income.adjustments, adjustment_id, None, "adjustment")
            updated = income.model_copy(update={"adjustments": adjustments})
            self._incomes = _replace(self._incomes, income_id, updated, "income")
        self._notify("incomes")

    # Freelance -----------------------------------------------------------

    def get_freelance_income(self, freelance_id: str) -> FreelanceIncome:
        for invoice in self._freelance:
            if invoice.id == freelance_id:
                return invoice
        raise NotFoundError(f"Unknown freelance id: {freelance_id}")

    def _invoice(
        self, client: str, description: str, amount: float, freelance_id: str | None
    ) -> FreelanceIncome:
        _raise_if_invalid(validate_non_empty_string(client, "Client"))
        result = validate_amount(amount)
        if not result:
            raise ValueError(f"Freelance amount: {result.error}")
        return _build(
            lambda: FreelanceIncome.create(
                client, description or "", amount, self._config.mva.rate, id=freelance_id
            )
        )

    def add_freelance_income(self, client: str, description: str, amount: float) -> FreelanceIncome:
        invoice = self._invoice(client, description, amount, None)
        with self._lock:
            self._freelance = self._freelance + (invoice,)
        self._notify("freelance")
        return invoice

    def update_freelance_income(
        self, freelance_id: str, client: str, description: str, amount: float
    ) -> FreelanceIncome:
        """Replace an invoice, recomputing its MVA."""

        invoice = self._invoice(client, description, amount, freelance_id)
        with self._lock:
            self._freelance = _replace(self._freelance, freelance_id, invoice, "freelance")
        self._notify("freelance")
        return invoice

    def remove_freelance_income(self, freelance_id: str) -> None:
        with self._lock:
            self._freelance = _replace(self._freelance, freelance_id, None, "freelance")
        self._notify("freelance")

    # Expenses ------------------------------------------------------------

    def get_expense(self, expense_id: str) -> Expense:
        for expense in self._expenses:
            if expense.id == expense_id:
                return expense
        raise NotFoundError(f"Unknown expense id: {expense_id}")

    def _expense(
        self,
        name: str,
        monthly_amounts: Sequence[float],
        category: str,
        frequency: str,
        expense_id: str | None,
    ) -> Expense:
        payload: dict[str, Any] = {
            "name": name,
            "monthly_amounts": (
                list(monthly_amounts)
                if isinstance(monthly_amounts, (list, tuple))
                else monthly_amounts
            ),
            "category": category,
            "frequency": frequency,
        }
        _raise_if_invalid(validate_expense(payload))
        if expense_id is not None:
            payload["id"] = expense_id
        return _build(lambda: Expense.model_validate(payload))

    def add_expense(
        self,
        name: str,
        monthly_amounts: Sequence[float],
        category: str,
        frequency: str | None = None,
    ) -> Expense:
        expense = self._expense(name, monthly_amounts, category, frequency or "monthly", None)
        with self._lock:
            self._expenses = self._expenses + (expense,)
        self._notify("expenses")
        return expense

    def update_expense(
        self,
        expense_id: str,
        name: str,
        monthly_amounts: Sequence[float],
        category: str,
        frequency: str | None = None,
    ) -> Expense:
        """Replace an expense; an omitted ``frequency`` keeps the stored one."""

        if frequency is None:
            frequency = self.get_expense(expense_id).frequency
        expense = self._expense(name, monthly_amounts, category, frequency, expense_id)
        with self._lock:
            self._expenses = _replace(self._expenses, expense_id, expense, "expense")
        self._notify("expenses")
        return expense

    def remove_expense(self, expense_id: str) -> None:
        with self._lock:
            self._expenses = _replace(self._expenses, expense_id, None, "expense")
        self._notify("expenses")

    # Derived metrics -----------------------------------------------------

    def combined_tax_input(self) -> CombinedTaxInput:
        """Return a consistent snapshot for the combined calculation."""

        with self._lock:
            return CombinedTaxInput(
                incomes=self._incomes,
                freelance_gross=self.total_freelance_income(),
                enk_expenses=self._enk_expenses,
                global_tax_method=self._tax_method,
                global_tax_percentage=self._tax_percentage,
            )

    def calculate_combined_tax(self) -> CombinedTaxBreakdown:
        return calculate_combined_tax(self.combined_tax_input(), self._config)

    def total_gross_income(self) -> float:
        """Monthly gross salary across incomes, adjustments excluded."""

        return sum(get_monthly_income(income) for income in self._incomes)

    def total_net_income(self) -> float:
        """Monthly net salary using each income's isolated tax preview."""

        return sum(
            calculate_tax(income, self._config).net_income / MONTHS_PER_YEAR
            for income in self._incomes
        )

    @staticmethod
    def monthly_expense_amount(expense: Expense) -> float:
        return expense.monthly_amount

    @staticmethod
    def yearly_expense_amount(expense: Expense) -> float:
        return expense.yearly_amount

    @staticmethod
    def expense_varies(expense: Expense) -> bool:
        return expense.varies

    def total_expenses(self) -> float:
        """Average monthly spend across all expenses."""

        return sum(expense.monthly_amount for expense in self._expenses)

    def monthly_totals(self) -> list[float]:
        expenses = self._expenses
        return [
            sum(expense.monthly_amounts[month] for expense in expenses)
            for month in range(MONTHS_PER_YEAR)
        ]

    def expenses_by_category(self, category: str) -> list[Expense]:
        return [expense for expense in self._expenses if expense.category == category]

    def category_total(self, category: str) -> float:
        return sum(expense.monthly_amount for expense in self.expenses_by_category(category))

    def category_totals(self) -> dict[str, float]:
        return {category: self.category_total(category) for category in EXPENSE_CATEGORIES}

    def monthly_savings(self) -> float:
        return self.total_net_income() - self.total_expenses()

    def savings_rate(self) -> float:
        net_income = self.total_net_income()
        if net_income == 0:
            return 0.0
        return self.monthly_savings() / net_income * 100

    def total_freelance_income(self) -> float:
        return sum(invoice.amount for invoice in self._freelance)

    def total_freelance_mva(self) -> float:
        return sum(invoice.mva for invoice in self._freelance)


class BudgetPersistence:
    """Observer writing changed collections to a key-value store.

    ``saver`` defaults to ``store.save``; pass a
    :class:`~kapitalen.backend.app.services.storage.DebouncedSaver` to
    coalesce bursts of edits.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        saver: Callable[[str, Any], Any] | None = None,
    ) -> None:
        self._store = store
        self._saver = saver or store.save

    def __call__(self, service: BudgetService, collection: str) -> None:
        key = STORAGE_KEYS[collection]
        self._saver(key, service.export_collection(collection))

    def persist_all(self, service: BudgetService) -> None:
        for collection in COLLECTIONS:
            self(service, collection)


def open_budget(
    store: KeyValueStore,
    *,
    config: YearConfiguration | None = None,
    saver: Callable[[str, Any], Any] | None = None,
) -> BudgetService:
    """Load a budget from ``store`` and keep it persisted on every change."""

    service = BudgetService.load(store, config=config)
    service.subscribe(BudgetPersistence(store, saver=saver))
    _LOGGER.debug(
        "Loaded budget with %d incomes, %d invoices and %d expenses",
        len(service.incomes),
        len(service.freelance_incomes),
        len(service.expenses),
    )
    return service


__all__ = [
    "BudgetPersistence",
    "BudgetService",
    "COLLECTIONS",
    "NotFoundError",
    "open_budget",
]
