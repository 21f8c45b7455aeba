from bidding_rules import (
    BID_ROUNDS,
    ROUND1_AND_2_CAPACITY,
    ROUND1_CAPACITY,
    ROUND1_MIN_PRIORITY,
)
from models import RoundAllocation


def allocate_bid_rounds(ranked_entries) -> RoundAllocation:
    """
    Deterministically assign ranked entries to bidding rounds 1-3.

    Round 1: up to ROUND1_CAPACITY entries with priority > ROUND1_MIN_PRIORITY.
    Round 2: second pass over the same ranking, skipping placed entries,
             until Round 1 + Round 2 reaches ROUND1_AND_2_CAPACITY.
    Round 3: everything left, uncapped.
    Ranked order is preserved inside every round.
    """
    ranked = list(ranked_entries)
    # Placement is tracked by ranked position so repeated ids still land once each.
    placed: set[int] = set()
    buckets: dict[int, list] = {round_no: [] for round_no in BID_ROUNDS}

    def place(pos: int, round_no: int):
        buckets[round_no].append(ranked[pos])
        placed.add(pos)

    # Pass 1: high-priority entries only.
    for pos, entry in enumerate(ranked):
        if len(buckets[1]) >= ROUND1_CAPACITY:
            break
        if entry.priority > ROUND1_MIN_PRIORITY:
            place(pos, 1)

    # Pass 2: anything not yet placed, up to the combined cap.
    round2_capacity = ROUND1_AND_2_CAPACITY - len(buckets[1])
    for pos in range(len(ranked)):
        if len(buckets[2]) >= round2_capacity:
            break
        if pos in placed:
            continue
        place(pos, 2)

    # Pass 3: remainder.
    for pos in range(len(ranked)):
        if pos not in placed:
            place(pos, 3)

    return RoundAllocation(rounds={r: tuple(buckets[r]) for r in BID_ROUNDS})
