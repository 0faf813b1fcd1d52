"""
Unit Tests for WBS generation.

Tests business rules:
- Fixed root / phase / group layout with parent-group sub-disciplines
- Cost-category budgets (Indirect Labor carries the add-ons)
- Code derivation shares the tree's lookup tables
- Structural invariants: level step of 1, path matches code
"""
import pytest
from decimal import Decimal

from costcontrol.domain.entities import BudgetDiscipline, CostType, WBSNode
from costcontrol.domain.exceptions import InvalidWBSCodeError, ValidationError
from costcontrol.domain.services import WBSGenerator, rollup_budget_totals, validate_wbs_structure
from costcontrol.domain.services.wbs_generator import labor_category_suffix


def discipline(name, **categories):
    return BudgetDiscipline.from_dict({
        'name': name,
        'categories': {key: {'value': value} for key, value in categories.items()},
    })


@pytest.fixture
def generator(config):
    return WBSGenerator(config)


@pytest.fixture
def disciplines():
    return [
        discipline(
            "MECHANICAL",
            DIRECT_LABOR=1000, INDIRECT_LABOR=10000, ADD_ONS=500,
            MATERIALS=2000, EQUIPMENT=300, SUBCONTRACTS=400,
        ),
        discipline("Piping", DIRECT_LABOR=500),
        discipline("GENERAL STAFFING", INDIRECT_LABOR=200),
        discipline("ALL LABOR", DIRECT_LABOR=1500),
    ]


@pytest.fixture
def nodes(generator, disciplines):
    return generator.generate_wbs_structure(disciplines)


def by_code(nodes):
    return {node.code: node for node in nodes}


# =============================================================================
# Tree layout
# =============================================================================

class TestTreeLayout:
    """Tests for the generated hierarchy."""

    def test_root_and_phase(self, nodes):
        """Root is level 1, phase is level 2 under it."""
        root, phase = nodes[0], nodes[1]
        assert root.code == "1" and root.level == 1 and root.parent_code is None
        assert root.description == "PROJECT TOTAL"
        assert phase.code == "1.1" and phase.level == 2 and phase.parent_code == "1"
        assert phase.phase == "PROJECT_EXECUTION"
        assert phase.children_count == 14

    def test_all_fixed_groups_emitted_in_order(self, nodes):
        """Every fixed group appears, even those without disciplines."""
        groups = [n.code for n in nodes if n.level == 3]
        assert groups == [f"1.1.{i:02d}" for i in range(1, 15)]

    def test_node_count(self, nodes):
        """Root + phase + 14 groups + 3 leaves x 5 categories + 2 sub-disciplines."""
        assert len(nodes) == 1 + 1 + 14 + 15 + 2

    def test_parent_group_gets_sub_discipline_nodes(self, nodes):
        """Mechanical group holds one node per matching discipline."""
        index = by_code(nodes)
        assert index["1.1.09"].children_count == 2
        assert index["1.1.09.01"].description == "MECHANICAL"
        assert index["1.1.09.02"].description == "Piping"
        assert index["1.1.09.01"].level == 4

    def test_standalone_group_takes_categories_directly(self, nodes):
        index = by_code(nodes)
        assert index["1.1.01"].children_count == 5
        assert index["1.1.01.02"].cost_type is CostType.IL
        assert index["1.1.01.02"].level == 4

    def test_empty_groups_have_no_children(self, nodes):
        index = by_code(nodes)
        assert index["1.1.14"].children_count == 0
        assert not any(code.startswith("1.1.14.") for code in index)

    def test_aggregate_rows_are_skipped(self, nodes):
        assert not any(n.description == "ALL LABOR" for n in nodes)

    def test_no_unassigned_group_when_everything_matches(self, nodes):
        assert "1.1.99" not in by_code(nodes)

    def test_lookup_is_case_insensitive(self, generator):
        nodes = generator.generate_wbs_structure([discipline("mechanical", DIRECT_LABOR=1)])
        assert by_code(nodes)["1.1.09.01"].description == "mechanical"

    def test_standalone_group_uses_first_discipline_only(self, generator):
        nodes = generator.generate_wbs_structure([
            discipline("SCAFFOLDING", DIRECT_LABOR=100),
            discipline("Scaffolding", DIRECT_LABOR=999),
        ])
        index = by_code(nodes)
        assert index["1.1.02.01"].budget_total == Decimal("100")
        assert index["1.1.02"].children_count == 5

    def test_generation_is_repeatable(self, generator, disciplines):
        assert generator.generate_wbs_structure(disciplines) == generator.generate_wbs_structure(disciplines)


class TestUnassignedDisciplines:
    """Tests for disciplines missing from the lookup table."""

    def test_unmatched_discipline_goes_to_group_99(self, generator):
        nodes = generator.generate_wbs_structure([
            discipline("UNDERWATER WELDING", SUBCONTRACTS=750),
        ])
        index = by_code(nodes)
        assert nodes[1].children_count == 15
        assert index["1.1.99"].description == "UNASSIGNED"
        assert index["1.1.99.01"].description == "UNDERWATER WELDING"
        assert index["1.1.99.01.05"].budget_total == Decimal("750")

    def test_unassigned_group_is_last(self, generator):
        nodes = generator.generate_wbs_structure([discipline("TELEPORTATION")])
        groups = [n.code for n in nodes if n.level == 3]
        assert groups[-1] == "1.1.99"

    def test_unmatched_discipline_is_logged(self, generator, caplog):
        with caplog.at_level("WARNING"):
            generator.generate_wbs_structure([discipline("TELEPORTATION")])
        assert "TELEPORTATION" in caplog.text


# =============================================================================
# Budgets
# =============================================================================

class TestCategoryBudgets:
    """Tests for cost-category budget totals."""

    def test_indirect_labor_includes_add_ons(self, nodes):
        """IL budget = INDIRECT_LABOR + ADD_ONS (10000 + 500)."""
        assert by_code(nodes)["1.1.09.01.02"].budget_total == Decimal("10500")

    def test_other_categories_copy_discipline_values(self, nodes):
        index = by_code(nodes)
        assert index["1.1.09.01.01"].budget_total == Decimal("1000")
        assert index["1.1.09.01.03"].budget_total == Decimal("2000")
        assert index["1.1.09.01.04"].budget_total == Decimal("300")
        assert index["1.1.09.01.05"].budget_total == Decimal("400")

    def test_add_on_detail_folds_into_indirect_labor(self, generator):
        nodes = generator.generate_wbs_structure([
            discipline("PAINTING", INDIRECT_LABOR=100, TAXES=10, PER_DIEM=20, SCAFFOLDING=30, RISK=40),
        ])
        assert by_code(nodes)["1.1.14.02"].budget_total == Decimal("200")

    def test_missing_categories_are_zero(self, nodes):
        assert by_code(nodes)["1.1.09.02.03"].budget_total == Decimal("0")

    def test_structural_nodes_carry_no_budget(self, nodes):
        index = by_code(nodes)
        assert index["1"].budget_total is None
        assert index["1.1.09"].budget_total is None

    def test_rollup_budget_totals(self, nodes):
        totals = rollup_budget_totals(nodes)
        assert totals["1.1.09.01"] == Decimal("14200")
        assert totals["1.1.09"] == Decimal("14700")
        assert totals["1"] == Decimal("14900")
        assert totals["1.1.05"] == Decimal("0")


# =============================================================================
# Structure invariants
# =============================================================================

class TestStructureInvariants:
    """Tests for code, level and path consistency."""

    def test_codes_are_unique(self, nodes):
        codes = [n.code for n in nodes]
        assert len(codes) == len(set(codes))

    def test_child_level_is_parent_plus_one(self, nodes):
        index = by_code(nodes)
        for node in nodes[1:]:
            assert node.level == index[node.parent_code].level + 1

    def test_path_length_equals_level(self, nodes):
        for node in nodes:
            assert len(node.path) == node.level
            assert node.path[-1] == node.code

    def test_sort_order_strictly_increasing(self, nodes):
        orders = [n.sort_order for n in nodes]
        assert orders == sorted(orders)
        assert len(set(orders)) == len(orders)

    def test_line_item_slots_reserved_after_categories(self, nodes):
        """Next node after a leaf's categories starts 50 slots after the first category."""
        index = by_code(nodes)
        first_category = index["1.1.01.01"].sort_order
        assert index["1.1.02"].sort_order == first_category + 50

    def test_validate_accepts_generated_tree(self, nodes):
        validate_wbs_structure(nodes)

    def test_validate_rejects_missing_parent(self, nodes):
        orphan = WBSNode.create("1.1.50.01", "Orphan", 999)
        with pytest.raises(InvalidWBSCodeError):
            validate_wbs_structure(list(nodes) + [orphan])

    def test_validate_rejects_duplicates(self, nodes):
        with pytest.raises(InvalidWBSCodeError):
            validate_wbs_structure(list(nodes) + [nodes[-1]])


class TestWBSNode:
    """Tests for WBSNode construction checks."""

    def test_create_derives_parent_level_and_path(self):
        node = WBSNode.create("1.1.09.01", "MECHANICAL", 5)
        assert node.parent_code == "1.1.09"
        assert node.level == 4
        assert node.path == ("1", "1.1", "1.1.09", "1.1.09.01")

    def test_parent_mismatch_rejected(self):
        with pytest.raises(InvalidWBSCodeError):
            WBSNode(
                code="1.1.09", level=3, description="x",
                path=("1", "1.1", "1.1.09"), sort_order=0, parent_code="1.2",
            )

    def test_path_length_mismatch_rejected(self):
        with pytest.raises(InvalidWBSCodeError):
            WBSNode(
                code="1.1.09", level=4, description="x",
                path=("1", "1.1", "1.1.09"), sort_order=0, parent_code="1.1",
            )

    def test_level_out_of_range_rejected(self):
        with pytest.raises(InvalidWBSCodeError):
            WBSNode.create("1.1.09.01.01.01.01", "too deep", 0)

    def test_empty_segment_rejected(self):
        with pytest.raises(InvalidWBSCodeError):
            WBSNode.create("1..09", "bad", 0)


# =============================================================================
# Code derivation and line items
# =============================================================================

class TestGetWBSCodeForItem:
    """Tests for deriving codes without building the tree."""

    def test_group_and_category(self, generator):
        assert generator.get_wbs_code_for_item("Painting", "DL") == "1.1.14.01"
        assert generator.get_wbs_code_for_item("PAINTING", CostType.SUB) == "1.1.14.05"

    def test_labor_category_appended_for_labor_only(self, generator):
        assert generator.get_wbs_code_for_item("Mechanical", "DL", "DL101", 1) == "1.1.09.01.01.101"
        assert generator.get_wbs_code_for_item("Mechanical", "IL", "IL05", 1) == "1.1.09.01.02.05"
        assert generator.get_wbs_code_for_item("Mechanical", "MAT", "DL101", 1) == "1.1.09.01.03"

    def test_labor_category_without_digits_adds_no_segment(self, generator):
        assert generator.get_wbs_code_for_item("Mechanical", "DL", "DL", 1) == "1.1.09.01.01"
        assert generator.get_wbs_code_for_item("PAINTING", "IL", "IL") == "1.1.14.02"

    def test_unknown_discipline_and_cost_type(self, generator):
        assert generator.get_wbs_code_for_item("Unknown Trade", "SUB", sub_discipline_index=1) == "1.1.99.01.05"
        assert generator.get_wbs_code_for_item("Piping", "XX", sub_discipline_index=2) == "1.1.09.02.99"

    def test_sub_discipline_index_for_parent_groups(self, generator):
        code = generator.get_wbs_code_for_item("Piping", "IL", "IL05", sub_discipline_index=2)
        assert code == "1.1.09.02.02.05"

    @pytest.mark.parametrize("name", ["Piping", "Unknown Trade"])
    def test_parent_group_needs_sub_discipline_index(self, generator, name):
        with pytest.raises(ValidationError) as exc_info:
            generator.get_wbs_code_for_item(name, "IL")
        assert exc_info.value.field == "sub_discipline_index"

    def test_sub_discipline_index_ignored_for_standalone_groups(self, generator):
        assert generator.get_wbs_code_for_item("PAINTING", "DL", sub_discipline_index=3) == "1.1.14.01"

    @pytest.mark.parametrize("name,index", [
        ("MECHANICAL", 1),
        ("Piping", 2),
        ("GENERAL STAFFING", None),
    ])
    def test_derived_codes_name_matching_categories(self, generator, nodes, name, index):
        tree = by_code(nodes)
        for cost_type in CostType:
            code = generator.get_wbs_code_for_item(name, cost_type, sub_discipline_index=index)
            assert tree[code].cost_type is cost_type

    def test_labor_category_suffix(self):
        assert labor_category_suffix("DL101") == "101"
        assert labor_category_suffix("IL05") == "05"
        assert labor_category_suffix("DL|202") == "202"
        assert labor_category_suffix("DL") == ""


class TestLineItems:
    """Tests for level-5+ line item helpers."""

    def test_labor_line_items(self, generator):
        items = generator.create_labor_line_items(
            "1.1.09.01.01", "DL",
            [{'code': 'DL101', 'name': 'Pipefitter'}, {'code': 'DL102', 'name': 'Welder'}],
            start_sort_order=10,
        )
        assert [i.code for i in items] == ["1.1.09.01.01.101", "1.1.09.01.01.102"]
        assert [i.sort_order for i in items] == [10, 11]
        assert items[0].labor_category_id == "DL101"
        assert items[0].cost_type is CostType.DL
        assert items[0].level == 6

    def test_labor_line_items_need_labor_cost_type(self, generator):
        with pytest.raises(ValidationError):
            generator.create_labor_line_items("1.1.01.03", "MAT", [], 0)

    def test_material_line_items(self, generator):
        items = generator.create_material_line_items("1.1.01.03", start_sort_order=20)
        assert [i.code for i in items] == ["1.1.01.03.01", "1.1.01.03.02", "1.1.01.03.03"]
        assert [i.description for i in items] == [
            "Materials - Taxed", "Materials - Taxes", "Materials - Non-Taxed",
        ]
        assert all(i.level == 5 and i.parent_code == "1.1.01.03" for i in items)
