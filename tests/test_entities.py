"""
Tests for the domain entities and value helpers.
"""
import pytest
from datetime import date, datetime
from decimal import Decimal

from costcontrol.domain.entities import (
    BudgetCategory, BudgetDiscipline, CategoryBudget, CraftType, LaborActual, LaborCategory,
    LaborForecast, PerDiemConfig, PurchaseOrder, RateBucket, optional_decimal, to_date, to_decimal,
)


class TestValueHelpers:
    """Tests for numeric and date coercion."""

    @pytest.mark.parametrize("raw,expected", [
        (None, Decimal("0")),
        ("", Decimal("0")),
        ("$1,250.50", Decimal("1250.50")),
        (12, Decimal("12")),
        (0.28, Decimal("0.28")),
        ("n/a", Decimal("0")),
        (float("nan"), Decimal("0")),
    ])
    def test_to_decimal(self, raw, expected):
        assert to_decimal(raw) == expected

    def test_optional_decimal_keeps_missing(self):
        assert optional_decimal(None) is None
        assert optional_decimal(float("nan")) is None
        assert optional_decimal(0) == Decimal("0")

    def test_to_date(self):
        assert to_date("2024-01-07") == date(2024, 1, 7)
        assert to_date("2024-01-07T10:00:00") == date(2024, 1, 7)
        assert to_date(datetime(2024, 1, 7, 12)) == date(2024, 1, 7)
        assert to_date(None) is None


class TestBudgetEntities:
    """Tests for budget disciplines and categories."""

    def test_category_names_are_normalised(self):
        assert BudgetCategory.parse("direct labor") is BudgetCategory.DIRECT_LABOR
        assert BudgetCategory.parse("ADD-ONS") is BudgetCategory.ADD_ONS

    def test_negative_category_rejected(self):
        with pytest.raises(ValueError):
            CategoryBudget(value=Decimal("-1"))

    def test_explicit_add_ons_win_over_detail(self):
        discipline = BudgetDiscipline.from_dict({
            'discipline': 'PIPING',
            'categories': {'ADD_ONS': 100, 'TAXES': 999},
        })
        assert discipline.name == "PIPING"
        assert discipline.add_ons_value == Decimal("100")

    def test_aggregate_rows(self):
        assert BudgetDiscipline("Discipline Totals").is_aggregate
        assert not BudgetDiscipline("PIPING").is_aggregate


class TestCommitmentEntities:
    """Tests for purchase order parsing."""

    def test_blank_fields_stay_none(self):
        po = PurchaseOrder.from_dict({'po_number': 'PO-9', 'committed_amount': '500', 'forecast_amount': ''})
        assert po.committed_amount == Decimal("500")
        assert po.forecast_amount is None
        assert po.invoiced == Decimal("0")


class TestLaborEntities:
    """Tests for labor entities."""

    def test_labor_category_parse(self):
        assert LaborCategory.parse("Indirect") is LaborCategory.INDIRECT
        assert LaborCategory.parse(None) is LaborCategory.DIRECT
        assert LaborCategory.parse("apprentice", LaborCategory.STAFF) is LaborCategory.STAFF

    def test_craft_type_from_dict(self):
        craft = CraftType.from_dict({'id': 7, 'default_rate': '55.5', 'category': 'STAFF'})
        assert craft.id == "7"
        assert craft.default_rate == Decimal("55.5")
        assert craft.category is LaborCategory.STAFF

    def test_labor_actual_uses_known_craft_type(self):
        crafts = {"c1": CraftType(id="c1", category=LaborCategory.INDIRECT)}
        actual = LaborActual.from_dict({'craft_type_id': 'c1', 'actual_hours': 8}, crafts)
        assert actual.craft_type.category is LaborCategory.INDIRECT
        assert actual.actual_cost is None

    def test_labor_actual_without_craft(self):
        assert LaborActual.from_dict({'actual_hours': 8}).craft_type_id is None

    def test_negative_headcount_rejected(self):
        with pytest.raises(ValueError):
            LaborForecast(craft_type="c1", forecasted_headcount=Decimal("-1"))

    def test_rate_bucket_without_hours(self):
        assert RateBucket(hours=Decimal("0"), cost=Decimal("10")).rate == Decimal("0")


class TestPerDiemConfig:
    """Tests for per diem settings parsing."""

    def test_from_dict(self):
        config = PerDiemConfig.from_dict({'per_diem_enabled': 1, 'per_diem_rate_direct': '150'})
        assert config.per_diem_enabled is True
        assert config.per_diem_rate_direct == Decimal("150")
        assert config.per_diem_rate_indirect == Decimal("0")
