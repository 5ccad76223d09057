"""Unit tests for the budget aggregate and its persistence observer."""

from __future__ import annotations

import pytest

from kapitalen.backend.app.services.budget_service import (
    BudgetPersistence,
    BudgetService,
    NotFoundError,
    open_budget,
)
from kapitalen.backend.app.services.storage import (
    STORAGE_KEYS,
    DebouncedSaver,
    InMemoryKeyValueStore,
)


def _add_salary(budget: BudgetService, **overrides):
    arguments = {"name": "Jobb", "yearly_amount": 600_000, "employee_percentage": 100}
    arguments.update(overrides)
    return budget.add_income(**arguments)


# Incomes ---------------------------------------------------------------------


def test_add_income_assigns_id_and_notifies(budget: BudgetService) -> None:
    events: list[str] = []
    budget.subscribe(lambda service, collection: events.append(collection))

    income = _add_salary(budget)

    assert income.id
    assert budget.incomes == (income,)
    assert events == ["incomes"]


def test_add_income_rejects_invalid_input(budget: BudgetService) -> None:
    with pytest.raises(ValueError, match="Yearly amount: Amount cannot be negative."):
        _add_salary(budget, yearly_amount=-1)

    assert budget.incomes == ()


def test_prosenttrekk_income_defaults_percentage(budget: BudgetService) -> None:
    income = _add_salary(budget, tax_method="prosenttrekk")

    assert income.custom_tax_percentage == 35


def test_update_income_keeps_id_and_adjustments(budget: BudgetService) -> None:
    income = _add_salary(budget)
    adjustment = budget.add_adjustment(income.id, "bonus", 25_000, 6)

    updated = budget.update_income(income.id, "Ny jobb", 650_000, 80)

    assert updated.id == income.id
    assert updated.name == "Ny jobb"
    assert updated.adjustments == (adjustment,)
    assert budget.get_income(income.id) == updated


def test_unknown_ids_raise_key_error(budget: BudgetService) -> None:
    with pytest.raises(KeyError):
        budget.update_income("missing", "Jobb", 1, 100)
    with pytest.raises(KeyError):
        budget.remove_income("missing")
    with pytest.raises(KeyError):
        budget.remove_expense("missing")
    with pytest.raises(KeyError):
        budget.get_freelance_income("missing")


def test_lookup_failures_name_the_missing_id(budget: BudgetService) -> None:
    with pytest.raises(NotFoundError, match="Unknown expense id: missing") as info:
        budget.update_expense("missing", "Mat", [1] * 12, "mat-inne")

    assert isinstance(info.value, KeyError)
    assert str(info.value) == "Unknown expense id: missing"


def test_remove_income(budget: BudgetService) -> None:
    first = _add_salary(budget, name="A")
    second = _add_salary(budget, name="B")

    budget.remove_income(first.id)

    assert budget.incomes == (second,)


def test_unsubscribe_stops_notifications(budget: BudgetService) -> None:
    events: list[str] = []
    unsubscribe = budget.subscribe(lambda service, collection: events.append(collection))

    unsubscribe()
    _add_salary(budget)

    assert events == []


# Adjustments -----------------------------------------------------------------


def test_adjustment_lifecycle(budget: BudgetService) -> None:
    income = _add_salary(budget)

    bonus = budget.add_adjustment(income.id, "bonus", 10_000, 3, description="Q1")
    other = budget.add_adjustment(income.id, "annet", 5_000, 4)

    assert bonus.affects_feriepenger is True
    assert other.affects_feriepenger is False

    updated = budget.update_adjustment(income.id, other.id, "annet", 7_500, 5)
    assert updated.id == other.id
    assert updated.affects_feriepenger is False
    assert budget.get_income(income.id).adjustments == (bonus, updated)

    budget.remove_adjustment(income.id, bonus.id)
    assert budget.get_income(income.id).adjustments == (updated,)


def test_adjustment_validation(budget: BudgetService) -> None:
    income = _add_salary(budget)

    with pytest.raises(ValueError, match="Month must be an integer"):
        budget.add_adjustment(income.id, "bonus", 1_000, 13)
    with pytest.raises(KeyError):
        budget.update_adjustment(income.id, "missing", "bonus", 1_000, 1)


# Freelance -------------------------------------------------------------------


def test_freelance_invoices_compute_mva(budget: BudgetService) -> None:
    invoice = budget.add_freelance_income("Kunde AS", "Rådgivning", 40_000)

    assert invoice.mva == pytest.approx(10_000)
    assert budget.total_freelance_income() == pytest.approx(40_000)
    assert budget.total_freelance_mva() == pytest.approx(10_000)

    updated = budget.update_freelance_income(invoice.id, "Kunde AS", "", 20_000)
    assert updated.mva == pytest.approx(5_000)

    budget.remove_freelance_income(invoice.id)
    assert budget.freelance_incomes == ()


def test_freelance_requires_client_and_amount(budget: BudgetService) -> None:
    with pytest.raises(ValueError, match="Client cannot be empty."):
        budget.add_freelance_income(" ", "", 100)
    with pytest.raises(ValueError, match="Freelance amount: Amount cannot be negative."):
        budget.add_freelance_income("Kunde", "", -100)


# Expenses --------------------------------------------------------------------


def test_expense_metrics(budget: BudgetService) -> None:
    rent = budget.add_expense("Husleie", [12_000] * 12, "faste-utgifter")
    power = budget.add_expense("Strøm", [1_500] * 3 + [600] * 6 + [1_500] * 3, "faste-utgifter")
    budget.add_expense("Strømming", [120] * 12, "abonnement")

    assert budget.total_expenses() == pytest.approx(12_000 + 1_050 + 120)
    assert budget.monthly_totals()[0] == pytest.approx(13_620)
    assert budget.monthly_totals()[5] == pytest.approx(12_720)
    assert budget.expenses_by_category("faste-utgifter") == [rent, power]
    assert budget.category_total("abonnement") == pytest.approx(120)
    assert budget.category_totals()["mat-ute"] == 0
    assert BudgetService.expense_varies(power) is True
    assert BudgetService.expense_varies(rent) is False
    assert BudgetService.yearly_expense_amount(power) == pytest.approx(12_600)
    assert BudgetService.monthly_expense_amount(power) == pytest.approx(1_050)


def test_expense_validation(budget: BudgetService) -> None:
    with pytest.raises(ValueError, match="Exactly 12 monthly amounts"):
        budget.add_expense("Husleie", [12_000] * 6, "faste-utgifter")
    with pytest.raises(ValueError, match="Invalid expense category."):
        budget.add_expense("Husleie", [12_000] * 12, "bolig")


def test_update_expense(budget: BudgetService) -> None:
    expense = budget.add_expense("Mat", [4_000] * 12, "mat-inne")

    updated = budget.update_expense(expense.id, "Mat ute", [1_000] * 12, "mat-ute")

    assert updated.id == expense.id
    assert budget.expenses == (updated,)


def test_expense_frequency_is_kept_on_update(config) -> None:
    store = InMemoryKeyValueStore()
    store.save(
        STORAGE_KEYS["expenses"],
        [{"id": "e1", "name": "Forsikring", "amount": 1_200, "frequency": "yearly"}],
    )
    budget = BudgetService.load(store, config=config)
    assert budget.get_expense("e1").frequency == "yearly"

    updated = budget.update_expense("e1", "Forsikring", [100.0] * 12, "faste-utgifter")
    assert updated.frequency == "yearly"

    changed = budget.update_expense(
        "e1", "Forsikring", [100.0] * 12, "faste-utgifter", frequency="monthly"
    )
    assert changed.frequency == "monthly"


def test_add_expense_accepts_frequency(budget: BudgetService) -> None:
    assert budget.add_expense("Mat", [4_000] * 12, "mat-inne").frequency == "monthly"
    assert (
        budget.add_expense("Bil", [500] * 12, "faste-utgifter", frequency="yearly").frequency
        == "yearly"
    )

    with pytest.raises(ValueError, match="Invalid expense frequency."):
        budget.add_expense("Bil", [500] * 12, "faste-utgifter", frequency="weekly")


# Settings and derived metrics ------------------------------------------------


def test_settings_are_clamped(budget: BudgetService) -> None:
    budget.set_enk_expenses(-500)
    budget.set_tax_percentage(150)

    assert budget.enk_expenses == 0
    assert budget.tax_percentage == 100

    with pytest.raises(ValueError, match="Invalid tax method."):
        budget.set_tax_method("flat")
    with pytest.raises(ValueError):
        budget.set_enk_expenses(float("nan"))


def test_monthly_income_and_savings(budget: BudgetService) -> None:
    _add_salary(budget)
    budget.add_expense("Husleie", [15_000] * 12, "faste-utgifter")

    # The isolated preview of 600 000 withholds 35 %.
    assert budget.total_gross_income() == pytest.approx(50_000)
    assert budget.total_net_income() == pytest.approx(32_500)
    assert budget.monthly_savings() == pytest.approx(17_500)
    assert budget.savings_rate() == pytest.approx(17_500 / 32_500 * 100)


def test_savings_rate_without_income(budget: BudgetService) -> None:
    assert budget.savings_rate() == 0


def test_combined_tax_uses_budget_snapshot(budget: BudgetService) -> None:
    _add_salary(budget)
    budget.add_freelance_income("A", "", 120_000)
    budget.add_freelance_income("B", "", 80_000)
    budget.set_enk_expenses(50_000)

    result = budget.calculate_combined_tax()

    assert result.enk_gross == pytest.approx(200_000)
    assert result.total_tax == pytest.approx(201_802.2)


def test_global_prosenttrekk_setting_drives_withholding(budget: BudgetService) -> None:
    _add_salary(budget)
    budget.set_tax_method("prosenttrekk")
    budget.set_tax_percentage(30)

    assert budget.calculate_combined_tax().skattetrekk == pytest.approx(180_000)


def test_clear_resets_everything(budget: BudgetService) -> None:
    _add_salary(budget)
    budget.set_tax_method("prosenttrekk")
    budget.set_tax_percentage(20)

    budget.clear()

    assert budget.incomes == ()
    assert budget.tax_method == "tabelltrekk"
    assert budget.tax_percentage == 35


# Persistence -----------------------------------------------------------------


def test_open_budget_persists_changes(config) -> None:
    store = InMemoryKeyValueStore()
    budget = open_budget(store, config=config)

    income = _add_salary(budget)
    budget.set_tax_method("prosenttrekk")

    document = store.load(STORAGE_KEYS["incomes"])
    assert document["schemaVersion"] == 2
    assert document["items"][0]["id"] == income.id
    assert store.load(STORAGE_KEYS["tax_method"]) == "prosenttrekk"

    reloaded = BudgetService.load(store, config=config)
    assert reloaded.incomes == budget.incomes
    assert reloaded.tax_method == "prosenttrekk"


def test_load_upgrades_legacy_documents(config) -> None:
    store = InMemoryKeyValueStore()
    store.save(
        STORAGE_KEYS["incomes"],
        [{"id": "old", "name": "Jobb", "yearlyAmount": 400_000, "employeePercentage": 100}],
    )
    store.save(
        STORAGE_KEYS["expenses"],
        [{"id": "e", "name": "Bil", "amount": 6_000, "frequency": "yearly", "category": "transport"}],
    )
    store.save(STORAGE_KEYS["enk_expenses"], "not a number")

    budget = BudgetService.load(store, config=config)

    assert budget.incomes[0].id == "old"
    assert budget.expenses[0].monthly_amounts == (500,) * 12
    assert budget.expenses[0].category == "faste-utgifter"
    assert budget.enk_expenses == 0


def test_persistence_can_be_debounced(config) -> None:
    store = InMemoryKeyValueStore()
    saver = DebouncedSaver(store, delay_seconds=60)
    budget = open_budget(store, config=config, saver=saver)

    _add_salary(budget)
    _add_salary(budget, name="Deltid", employee_percentage=50)

    assert store.has(STORAGE_KEYS["incomes"]) is False
    saver.flush()
    assert len(store.load(STORAGE_KEYS["incomes"])["items"]) == 2


def test_persist_all_writes_every_collection(budget: BudgetService) -> None:
    store = InMemoryKeyValueStore()

    BudgetPersistence(store).persist_all(budget)

    assert all(store.has(key) for key in STORAGE_KEYS.values())
    assert store.load(STORAGE_KEYS["tax_percentage"]) == 35


def test_load_skips_unreadable_records(config) -> None:
    store = InMemoryKeyValueStore()
    store.save(STORAGE_KEYS["freelance"], [{"id": "f1", "client": "Kunde", "amount": "1000"}])
    store.save(
        STORAGE_KEYS["incomes"],
        [{"id": "i1", "name": "Jobb", "yearlyAmount": 400_000, "employeePercentage": 100}],
    )

    budget = BudgetService.load(store, config=config)

    assert budget.freelance_incomes == ()
    assert [income.id for income in budget.incomes] == ["i1"]
