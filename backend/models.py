"""
Typed records shared by the loader, the ranking core and the server.

All records are frozen: a ranking pass never mutates its inputs, and each
request builds a fresh RoundAllocation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from bidding_rules import (
    BID_ROUNDS,
    HISTORICAL_ROUNDS,
    ROUND1_AND_2_CAPACITY,
    ROUND1_CAPACITY,
)


@dataclass(frozen=True)
class HistoricalRecord:
    """One course/class offering with its per-round supply/demand history.

    rates[r] is demand/supply for round r: None when the round has no data,
    math.inf when demand vastly exceeded supply.
    """

    course_code: str
    class_code: str
    filled: tuple = (None, None, None, None)
    rates: tuple = (None, None, None, None)

    def rate(self, round_no: int) -> Optional[float]:
        if round_no not in HISTORICAL_ROUNDS or round_no >= len(self.rates):
            return None
        return self.rates[round_no]

    def filled_flag(self, round_no: int) -> Optional[bool]:
        if round_no not in HISTORICAL_ROUNDS or round_no >= len(self.filled):
            return None
        return self.filled[round_no]

    @property
    def key(self) -> tuple[str, str]:
        return (self.course_code.strip(), self.class_code.strip())


@dataclass(frozen=True)
class SelectionEntry:
    """A course/class the student wants to bid for.

    priority is derived from category when the entry is created and never
    recomputed afterwards.
    """

    id: str
    course_code: str
    class_code: str
    category: str
    priority: int

    @property
    def key(self) -> tuple[str, str]:
        return (self.course_code.strip(), self.class_code.strip())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "course_code": self.course_code,
            "class_code": self.class_code,
            "category": self.category,
            "priority": self.priority,
        }


@dataclass(frozen=True)
class MergedEntry:
    selection: SelectionEntry
    record: HistoricalRecord

    @property
    def id(self) -> str:
        return self.selection.id

    @property
    def course_code(self) -> str:
        return self.selection.course_code

    @property
    def class_code(self) -> str:
        return self.selection.class_code

    @property
    def category(self) -> str:
        return self.selection.category

    @property
    def priority(self) -> int:
        return self.selection.priority

    def rate(self, round_no: int) -> Optional[float]:
        return self.record.rate(round_no)

    def filled_flag(self, round_no: int) -> Optional[bool]:
        return self.record.filled_flag(round_no)


@dataclass(frozen=True)
class RoundAllocation:
    """Recommended bidding round for every matched entry."""

    rounds: dict = field(default_factory=lambda: {r: () for r in BID_ROUNDS})

    def entries(self, round_no: int) -> tuple:
        return self.rounds.get(round_no, ())

    @property
    def round1_capacity(self) -> int:
        return ROUND1_CAPACITY

    @property
    def round2_capacity(self) -> int:
        return ROUND1_AND_2_CAPACITY - len(self.entries(1))

    @property
    def total_round1_and_2(self) -> int:
        return len(self.entries(1)) + len(self.entries(2))

    @property
    def total(self) -> int:
        return sum(len(self.entries(r)) for r in BID_ROUNDS)

    def round_of(self, entry_id: str) -> Optional[int]:
        for round_no in BID_ROUNDS:
            if any(e.id == entry_id for e in self.entries(round_no)):
                return round_no
        return None

    def to_dict(self) -> dict:
        return {
            "rounds": {
                str(round_no): [
                    {
                        "position": idx + 1,
                        "id": e.id,
                        "course_code": e.course_code,
                        "class_code": e.class_code,
                        "priority": e.priority,
                    }
                    for idx, e in enumerate(self.entries(round_no))
                ]
                for round_no in BID_ROUNDS
            },
            "round_capacity": {
                "1": self.round1_capacity,
                "2": self.round2_capacity,
                "3": None,
            },
            "total_round1_and_2": self.total_round1_and_2,
            "round1_and_2_cap": ROUND1_AND_2_CAPACITY,
        }
