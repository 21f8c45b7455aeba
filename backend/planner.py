from allocator import allocate_bid_rounds
from merger import find_unmatched, merge_selections
from models import RoundAllocation
from ranking import build_risk_table, rank_entries


def compute_ranking(selections, catalog) -> list:
    """Merge selections with the catalog and return them in risk order."""
    return rank_entries(merge_selections(selections, catalog))


def compute_bid_order(selections, catalog) -> RoundAllocation:
    """Ranked selections split into recommended bidding rounds 1-3."""
    return allocate_bid_rounds(compute_ranking(selections, catalog))


def plan_bids(selections, catalog) -> dict:
    """
    JSON-safe summary of one ranking request.

    Returns:
      {
        "risk_table":      {"rounds": [...], "rows": [...]},
        "bid_order":       RoundAllocation.to_dict(),
        "unmatched":       [SelectionEntry.to_dict(), ...],
        "matched_count":   3,
        "selection_count": 4,
      }
    """
    selections = list(selections)
    ranked = compute_ranking(selections, catalog)
    allocation = allocate_bid_rounds(ranked)
    unmatched = find_unmatched(selections, catalog)
    return {
        "risk_table": build_risk_table(ranked),
        "bid_order": allocation.to_dict(),
        "unmatched": [s.to_dict() for s in unmatched],
        "matched_count": len(ranked),
        "selection_count": len(selections),
    }
