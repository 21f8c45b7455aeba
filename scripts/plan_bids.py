"""
Print the risk table and recommended bid order for a set of selections.

Usage:
    python scripts/plan_bids.py \
        --select "ACC1701,LV1,Primary Major courses" \
        --select "ACC2707,SA1,UTown/USP courses"
    python scripts/plan_bids.py --path data/bidding_history.csv --select ...
"""

import argparse
import os
import sys

BACKEND_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend")
sys.path.insert(0, BACKEND_DIR)

from data_loader import CatalogValidationError, load_catalog
from planner import plan_bids
from selections import create_selection


DEFAULT_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "data")


def parse_selection_arg(raw: str):
    """'CODE,CLASS[,CATEGORY]' -> SelectionEntry. The category may itself contain commas."""
    parts = [p.strip() for p in str(raw).split(",", 2)]
    if len(parts) < 2:
        raise argparse.ArgumentTypeError(f"expected CODE,CLASS[,CATEGORY], got {raw!r}")
    category = parts[2] if len(parts) == 3 else ""
    try:
        return create_selection(parts[0], parts[1], category)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def format_plan(plan: dict) -> str:
    table = plan["risk_table"]
    lines = ["Course Status Overview"]
    header = f"{'Course':<10} {'Class':<6} {'Pri':>3}  {'First over':<10}"
    for round_no in table["rounds"]:
        header += f"  Rd{round_no:<18}"
    lines.append(header)
    for row in table["rows"]:
        line = (
            f"{row['course_code']:<10} {row['class_code']:<6} {row['priority']:>3}  "
            f"{row['first_oversubscribed_label']:<10}"
        )
        for cell in row["rounds"]:
            line += f"  {cell['status'][:13]:<13} {cell['rate_display']:>6}"
        lines.append(line)

    bid_order = plan["bid_order"]
    lines.append("")
    lines.append(
        "Recommended Bidding Order "
        f"(Rounds 1 & 2: {bid_order['total_round1_and_2']}/{bid_order['round1_and_2_cap']})"
    )
    for round_no, entries in bid_order["rounds"].items():
        lines.append(f"  Round {round_no}:")
        if not entries:
            lines.append("    (none)")
        for item in entries:
            lines.append(f"    {item['position']}. {item['course_code']} {item['class_code']}")

    if plan["unmatched"]:
        lines.append("")
        lines.append(
            f"[WARN] {len(plan['unmatched'])} of {plan['selection_count']} "
            "selected courses have no historical data:"
        )
        for sel in plan["unmatched"]:
            lines.append(f"    {sel['course_code']} {sel['class_code']}")
    return "\n".join(lines)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Recommend a bidding order from historical data.")
    parser.add_argument("--path", default=DEFAULT_PATH, help="CSV/xlsx file or folder of CSVs")
    parser.add_argument(
        "--select",
        action="append",
        type=parse_selection_arg,
        default=[],
        metavar="CODE,CLASS,CATEGORY",
        help="Course selection; repeat for each course",
    )
    args = parser.parse_args(argv)

    try:
        catalog = load_catalog(args.path)
    except (FileNotFoundError, CatalogValidationError) as exc:
        print(f"[FATAL] Failed to load data: {exc}", file=sys.stderr)
        return 1

    if not args.select:
        print("[WARN] No selections given; nothing to rank.", file=sys.stderr)
        return 1

    plan = plan_bids(args.select, catalog)
    if plan["matched_count"] == 0:
        print("No matching course data found.")
    print(format_plan(plan))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
