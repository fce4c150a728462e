"""Tests for net-position aggregation and price breakdowns."""

from datetime import date
from decimal import Decimal

import pytest

from palmtrack.services.aggregation import (
    DEFICIT_LABEL,
    DEFICIT_NOTE,
    FORMULA_NOTE,
    SURPLUS_LABEL,
    SURPLUS_NOTE,
    AdvanceRecord,
    CollectionRecord,
    ExpenseRecord,
    ItemRecord,
    action_notes,
    aggregate,
    collection_fruit_spend,
    price_breakdown,
    to_decimal,
    top_deficits,
    top_surpluses,
)
from palmtrack.services.report_data import (
    normalize_collection,
    normalize_item,
    stored_collection_amount,
)

D = Decimal
DAY = date(2026, 3, 10)


def advance(agent_id, amount, name=None):
    return AdvanceRecord(id=f"a-{agent_id}-{amount}", agent_id=agent_id,
                         agent_name=name or agent_id.title(), date=DAY, amount=D(amount))


def expense(agent_id, amount, name=None):
    return ExpenseRecord(id=f"e-{agent_id}-{amount}", agent_id=agent_id,
                         agent_name=name or agent_id.title(), date=DAY,
                         expense_type="Transport", amount=D(amount))


def collection(agent_id, weight, items=(), stored="0", name=None):
    return CollectionRecord(
        id=f"c-{agent_id}-{weight}", agent_id=agent_id, agent_name=name or agent_id.title(),
        date=DAY, weight_kg=D(weight), stored_amount=D(stored),
        items=tuple(ItemRecord(f"c-{agent_id}", D(w), D(p)) for w, p in items),
    )


@pytest.mark.unit
class TestFruitSpend:

    def test_items_take_precedence_over_stored_amount(self):
        col = collection("kofi", "300", items=[("100", "2"), ("200", "3")], stored="999")
        assert collection_fruit_spend(col) == D("800")

    def test_falls_back_to_stored_amount(self):
        assert collection_fruit_spend(collection("kofi", "100", stored="450")) == D("450")

    def test_no_items_no_amount_is_zero(self):
        assert collection_fruit_spend(collection("kofi", "100")) == D("0")

    def test_stored_amount_uses_first_non_zero_field(self):
        row = {"total_amount_spent": 0, "total_amount": None, "amount_spent": "120.5"}
        assert stored_collection_amount(row) == D("120.5")

    def test_normalize_collection_prefers_total_weight(self):
        row = {"id": "c1", "agent_id": "a1", "agent_name": "Kofi",
               "collection_date": DAY, "weight_kg": 50, "total_weight_kg": 75}
        assert normalize_collection(row).weight_kg == D("75")

    def test_normalize_item_accepts_legacy_foreign_key(self):
        item = normalize_item({"fruit_collection_id": "c9", "weight_kg": "10", "price_per_kg": "x"})
        assert item.collection_id == "c9"
        assert item.price_per_kg == D("0")


@pytest.mark.unit
class TestToDecimal:

    @pytest.mark.parametrize("raw, expected", [
        (None, "0"), ("", "0"), ("abc", "0"), (float("nan"), "0"),
        (float("inf"), "0"), (True, "0"), ("12.50", "12.50"), (3, "3"), (1.5, "1.5"),
    ])
    def test_coercion(self, raw, expected):
        assert to_decimal(raw) == D(expected)


@pytest.mark.unit
class TestAggregate:

    def test_overall_net_and_outflow(self):
        totals = aggregate(
            [advance("kofi", "1000"), advance("ama", "500")],
            [expense("kofi", "100")],
            [collection("kofi", "200", items=[("200", "2.5")])],
        )
        assert totals.total_advances == D("1500")
        assert totals.total_expenses == D("100")
        assert totals.fruit_spend == D("500")
        assert totals.total_collection_weight == D("200")
        assert totals.total_outflow == D("2100")
        assert totals.net == D("900")
        assert totals.status_label == SURPLUS_LABEL
        assert totals.display_amount == D("900")

    def test_deficit_label_uses_absolute_amount(self):
        totals = aggregate([advance("kofi", "100")], [expense("kofi", "250")], [])
        assert totals.net == D("-150")
        assert totals.status_label == DEFICIT_LABEL
        assert totals.display_amount == D("150")

    def test_zero_net_counts_as_surplus(self):
        totals = aggregate([advance("kofi", "100")], [expense("kofi", "100")], [])
        assert totals.is_surplus

    def test_per_agent_positions_sorted_by_magnitude(self):
        totals = aggregate(
            [advance("kofi", "100"), advance("ama", "1000"), advance("yaw", "300")],
            [expense("yaw", "900")],
            [],
        )
        assert [p.agent_id for p in totals.agents] == ["ama", "yaw", "kofi"]
        assert [p.net for p in totals.agents] == [D("1000"), D("-600"), D("100")]

    def test_ties_break_on_name(self):
        totals = aggregate([advance("b", "100", "beta"), advance("a", "100", "Alpha")], [], [])
        assert [p.agent_name for p in totals.agents] == ["Alpha", "beta"]

    def test_rows_without_agent_count_overall_only(self):
        totals = aggregate([advance("", "100"), advance("kofi", "50")], [], [])
        assert totals.total_advances == D("150")
        assert [p.agent_id for p in totals.agents] == ["kofi"]

    def test_missing_name_becomes_unknown_then_fills_in(self):
        first = AdvanceRecord(id="1", agent_id="kofi", agent_name=None, date=DAY, amount=D("10"))
        totals = aggregate([first], [expense("kofi", "5", "Kofi Asare")], [])
        assert totals.agents[0].agent_name == "Kofi Asare"

    def test_empty_inputs(self):
        totals = aggregate([], [], [])
        assert totals.net == D("0")
        assert totals.agents == []
        assert action_notes(totals.agents) == []


@pytest.mark.unit
class TestTopLists:

    def setup_method(self):
        self.totals = aggregate(
            [advance(f"s{i}", str(100 * (i + 1))) for i in range(7)],
            [expense(f"d{i}", str(10 * (i + 1))) for i in range(3)],
            [],
        )

    def test_top_deficits_most_negative_first(self):
        deficits = top_deficits(self.totals.agents)
        assert [p.agent_id for p in deficits] == ["d2", "d1", "d0"]

    def test_top_surpluses_limited_to_five(self):
        surpluses = top_surpluses(self.totals.agents)
        assert len(surpluses) == 5
        assert surpluses[0].agent_id == "s6"
        assert all(p.net > 0 for p in surpluses)

    def test_action_notes_cover_both_sides(self):
        assert action_notes(self.totals.agents) == [DEFICIT_NOTE, SURPLUS_NOTE, FORMULA_NOTE]

    def test_only_surplus_note_when_nobody_is_overdrawn(self):
        totals = aggregate([advance("kofi", "10")], [], [])
        assert action_notes(totals.agents) == [SURPLUS_NOTE, FORMULA_NOTE]


@pytest.mark.unit
class TestPriceBreakdown:

    def test_groups_by_price_highest_first(self):
        items = [
            ItemRecord("c1", D("100"), D("2.5")),
            ItemRecord("c1", D("40"), D("3")),
            ItemRecord("c1", D("60"), D("2.50")),
        ]
        breakdown = price_breakdown(items)
        assert [b.price_per_kg for b in breakdown.buckets] == [D("3"), D("2.5")]
        assert breakdown.buckets[1].weight_kg == D("160")
        assert breakdown.buckets[1].amount == D("400")
        assert breakdown.total_weight == D("200")
        assert breakdown.total_amount == D("520")

    def test_empty(self):
        breakdown = price_breakdown([])
        assert breakdown.buckets == []
        assert breakdown.total_amount == D("0")
