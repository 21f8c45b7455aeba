"""
Risk ordering over merged selections.

Oversubscription policy: a round signals risk only when its rate is a finite
number >= 1. A missing rate or an infinite rate (no seats offered) is treated
as "no data" for ranking. The per-round display status in the risk table
still labels an infinite rate as oversubscribed.
"""

import math

from bidding_rules import (
    HISTORICAL_ROUNDS,
    NEVER_OVERSUBSCRIBED,
    OVERSUBSCRIBED_RATE,
    STATUS_NOT_AVAILABLE,
    STATUS_OVERSUBSCRIBED,
    STATUS_UNDERSUBSCRIBED,
)


def _is_finite_number(value) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def first_oversubscribed_round(entry) -> int:
    """First historical round with a finite rate >= 1, else NEVER_OVERSUBSCRIBED (4)."""
    for round_no in HISTORICAL_ROUNDS:
        rate = entry.rate(round_no)
        if _is_finite_number(rate) and rate >= OVERSUBSCRIBED_RATE:
            return round_no
    return NEVER_OVERSUBSCRIBED


def _rank_key(entry):
    first_round = first_oversubscribed_round(entry)
    # Rate tie-break only applies when the entry was oversubscribed at all.
    # Two entries sharing first_round are either both "never" (0.0 each) or
    # both oversubscribed at the same round.
    rate_at_first = 0.0
    if first_round != NEVER_OVERSUBSCRIBED:
        rate_at_first = entry.rate(first_round)
    return (first_round, -entry.priority, -rate_at_first, entry.course_code)


def rank_entries(entries) -> list:
    """
    Total order for bidding risk:
      1. earlier first oversubscribed round first
      2. higher priority first
      3. higher rate at the shared first oversubscribed round first
      4. course code ascending
    sorted() is stable, so full ties keep their input order.
    """
    return sorted(entries, key=_rank_key)


# ── Risk table helpers ────────────────────────────────────────────────────────

def round_status(filled, rate) -> str:
    if rate is None or filled is None:
        return STATUS_NOT_AVAILABLE
    if isinstance(rate, float) and math.isnan(rate):
        return STATUS_NOT_AVAILABLE
    if rate >= OVERSUBSCRIBED_RATE:
        return STATUS_OVERSUBSCRIBED
    return STATUS_UNDERSUBSCRIBED


def format_rate(rate) -> str:
    if rate is None or (isinstance(rate, float) and math.isnan(rate)):
        return "-"
    if math.isinf(rate):
        return "∞"
    return f"{rate:.2f}"


def has_round0_data(entries) -> bool:
    return any(
        e.filled_flag(0) is not None and e.rate(0) is not None
        for e in entries
    )


def first_round_label(first_round: int) -> str:
    if first_round == NEVER_OVERSUBSCRIBED:
        return "Never"
    return f"Round {first_round}"


def _json_rate(rate):
    # JSON has no infinity; rate_display carries it instead.
    if not _is_finite_number(rate):
        return None
    return float(rate)


def build_risk_table(ranked) -> dict:
    """JSON-safe rows for the ranked entries. Round 0 is shown only if any entry has it."""
    rounds = list(HISTORICAL_ROUNDS) if has_round0_data(ranked) else list(HISTORICAL_ROUNDS[1:])
    rows = []
    for entry in ranked:
        first_round = first_oversubscribed_round(entry)
        rows.append({
            "id": entry.id,
            "course_code": entry.course_code,
            "class_code": entry.class_code,
            "category": entry.category,
            "priority": entry.priority,
            "first_oversubscribed_round": first_round,
            "first_oversubscribed_label": first_round_label(first_round),
            "rounds": [
                {
                    "round": round_no,
                    "status": round_status(entry.filled_flag(round_no), entry.rate(round_no)),
                    "rate": _json_rate(entry.rate(round_no)),
                    "rate_display": format_rate(entry.rate(round_no)),
                }
                for round_no in rounds
            ],
        })
    return {"rounds": rounds, "rows": rows}
