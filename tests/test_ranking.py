import math

import pytest

from bidding_rules import NEVER_OVERSUBSCRIBED
from models import HistoricalRecord, MergedEntry, SelectionEntry
from ranking import (
    build_risk_table,
    first_oversubscribed_round,
    format_rate,
    has_round0_data,
    rank_entries,
    round_status,
)


def _entry(entry_id, course="ACC1701", klass="LV1", priority=6, rates=(None, None, None, None), filled=None):
    if filled is None:
        filled = tuple(None if r is None else (not math.isinf(r) and r <= 1) for r in rates)
    return MergedEntry(
        selection=SelectionEntry(entry_id, course, klass, "Primary Major courses", priority),
        record=HistoricalRecord(course, klass, tuple(filled), tuple(rates)),
    )


# ── first_oversubscribed_round ────────────────────────────────────────────────

class TestFirstOversubscribedRound:
    def test_single_round_over(self):
        e = _entry("a", rates=(None, 1.5, None, None))
        assert first_oversubscribed_round(e) == 1

    def test_all_rounds_missing_is_never(self):
        e = _entry("a")
        assert first_oversubscribed_round(e) == NEVER_OVERSUBSCRIBED == 4

    def test_rate_exactly_one_counts(self):
        e = _entry("a", rates=(0.5, 1.0, None, None))
        assert first_oversubscribed_round(e) == 1

    def test_round_zero(self):
        e = _entry("a", rates=(1.1, 2.0, None, None))
        assert first_oversubscribed_round(e) == 0

    def test_infinite_rate_is_not_a_signal(self):
        e = _entry("a", rates=(math.inf, 0.8, math.inf, None))
        assert first_oversubscribed_round(e) == NEVER_OVERSUBSCRIBED

    def test_infinite_then_finite_over(self):
        e = _entry("a", rates=(None, math.inf, 0.5, 1.2))
        assert first_oversubscribed_round(e) == 3

    def test_below_one_everywhere(self):
        e = _entry("a", rates=(0.1, 0.99, 0.5, 0.0))
        assert first_oversubscribed_round(e) == NEVER_OVERSUBSCRIBED

    def test_nan_rate_ignored(self):
        e = _entry("a", rates=(float("nan"), None, 1.3, None), filled=(None,) * 4)
        assert first_oversubscribed_round(e) == 2


# ── rank_entries ──────────────────────────────────────────────────────────────

class TestRankEntries:
    def test_earlier_risk_first(self):
        late = _entry("late", course="AAA1000", rates=(None, None, 1.5, None), priority=8)
        early = _entry("early", course="ZZZ1000", rates=(None, 1.2, None, None), priority=1)
        never = _entry("never", course="BBB1000", priority=8)
        ranked = rank_entries([never, late, early])
        assert [e.id for e in ranked] == ["early", "late", "never"]

    def test_same_round_higher_priority_first(self):
        low = _entry("p3", course="AAA1000", rates=(None, None, 1.4, None), priority=3)
        high = _entry("p6", course="ZZZ1000", rates=(None, None, 1.1, None), priority=6)
        ranked = rank_entries([low, high])
        assert [e.id for e in ranked] == ["p6", "p3"]

    def test_same_round_same_priority_higher_rate_first(self):
        mild = _entry("mild", course="AAA1000", rates=(None, 1.1, None, None), priority=5)
        hot = _entry("hot", course="ZZZ1000", rates=(None, 2.5, None, None), priority=5)
        ranked = rank_entries([mild, hot])
        assert [e.id for e in ranked] == ["hot", "mild"]

    def test_never_ties_fall_back_to_course_code(self):
        b = _entry("b", course="ACC2707", priority=4)
        a = _entry("a", course="ACC1701", priority=4)
        ranked = rank_entries([b, a])
        assert [e.id for e in ranked] == ["a", "b"]

    def test_never_ties_ignore_rates(self):
        # Both never oversubscribed: lower rates do not reorder them.
        a = _entry("a", course="ACC1701", priority=4, rates=(0.2, None, None, None))
        b = _entry("b", course="ACC2707", priority=4, rates=(0.9, None, None, None))
        ranked = rank_entries([b, a])
        assert [e.id for e in ranked] == ["a", "b"]

    def test_full_tie_keeps_input_order(self):
        x = _entry("x", course="ACC1701", klass="LV1", rates=(None, 1.5, None, None))
        y = _entry("y", course="ACC1701", klass="LV2", rates=(None, 1.5, None, None))
        assert [e.id for e in rank_entries([x, y])] == ["x", "y"]
        assert [e.id for e in rank_entries([y, x])] == ["y", "x"]

    def test_idempotent(self):
        entries = [
            _entry("a", course="ACC1701", rates=(None, 1.5, None, None), priority=2),
            _entry("b", course="ACC2707", rates=(None, 1.5, None, None), priority=2),
            _entry("c", course="ACC2709", rates=(0.5, 0.8, 1.9, None), priority=7),
            _entry("d", course="ACC3701", priority=8),
            _entry("e", course="ACC3702", rates=(None, 3.0, None, None), priority=1),
        ]
        once = rank_entries(entries)
        twice = rank_entries(once)
        assert [e.id for e in once] == [e.id for e in twice]

    def test_does_not_mutate_input(self):
        entries = [_entry("b", course="ZZZ1000"), _entry("a", course="AAA1000")]
        rank_entries(entries)
        assert [e.id for e in entries] == ["b", "a"]

    def test_empty(self):
        assert rank_entries([]) == []


# ── Risk table helpers ────────────────────────────────────────────────────────

class TestRoundStatus:
    def test_missing_rate_or_flag(self):
        assert round_status(None, 0.5) == "Full/Not Available"
        assert round_status(True, None) == "Full/Not Available"

    def test_oversubscribed(self):
        assert round_status(False, 1.0) == "Oversubscribed"

    def test_infinite_displays_oversubscribed(self):
        assert round_status(False, math.inf) == "Oversubscribed"

    def test_undersubscribed(self):
        assert round_status(True, 0.4) == "Undersubscribed"


class TestFormatRate:
    @pytest.mark.parametrize("rate,expected", [
        (None, "-"),
        (float("nan"), "-"),
        (math.inf, "∞"),
        (1.5, "1.50"),
        (0.333, "0.33"),
        (2, "2.00"),
    ])
    def test_format(self, rate, expected):
        assert format_rate(rate) == expected


class TestRiskTable:
    def test_round0_hidden_without_data(self):
        ranked = [_entry("a", rates=(None, 1.5, None, None))]
        assert has_round0_data(ranked) is False
        table = build_risk_table(ranked)
        assert table["rounds"] == [1, 2, 3]
        assert [c["round"] for c in table["rows"][0]["rounds"]] == [1, 2, 3]

    def test_round0_shown_when_any_entry_has_it(self):
        ranked = [
            _entry("a", rates=(None, 1.5, None, None)),
            _entry("b", course="ACC2707", rates=(0.7, None, None, None)),
        ]
        assert build_risk_table(ranked)["rounds"] == [0, 1, 2, 3]

    def test_row_contents(self):
        ranked = [_entry("a", priority=7, rates=(None, 1.5, math.inf, None))]
        row = build_risk_table(ranked)["rows"][0]
        assert row["id"] == "a"
        assert row["priority"] == 7
        assert row["first_oversubscribed_round"] == 1
        assert row["first_oversubscribed_label"] == "Round 1"
        rd1, rd2, rd3 = row["rounds"]
        assert rd1 == {"round": 1, "status": "Oversubscribed", "rate": 1.5, "rate_display": "1.50"}
        assert rd2["rate"] is None
        assert rd2["rate_display"] == "∞"
        assert rd3["status"] == "Full/Not Available"

    def test_never_label(self):
        row = build_risk_table([_entry("a")])["rows"][0]
        assert row["first_oversubscribed_label"] == "Never"
        assert row["first_oversubscribed_round"] == 4

    def test_empty(self):
        assert build_risk_table([]) == {"rounds": [1, 2, 3], "rows": []}
