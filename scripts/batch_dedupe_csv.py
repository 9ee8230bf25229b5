import argparse
import json
import os

import pandas as pd
from dotenv import load_dotenv

from backend.civic_agent.core.batch import batch_check_duplicates
from backend.civic_agent.core.config import load_settings
from backend.civic_agent.core.dedup_search import InMemoryReportStore
from backend.civic_agent.core.models import WorkItem

DEFAULT_INPUT = "data/reports.csv"
DEFAULT_OUTPUT = "data/duplicate_results.jsonl"

REQUIRED_COLS = ["id", "category", "title", "description", "lat", "lon", "created_at", "status"]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Batch duplicate check over a CSV of civic reports.")
    parser.add_argument("--input", default=DEFAULT_INPUT)
    parser.add_argument("--output", default=DEFAULT_OUTPUT)
    parser.add_argument("--limit", type=int, default=200)
    parser.add_argument("--start", type=int, default=0)
    return parser.parse_args()


def row_to_report(row: pd.Series) -> WorkItem:
    data = {}
    for col in REQUIRED_COLS:
        value = row.get(col)
        data[col] = None if pd.isna(value) else value
    if data["lat"] is not None and data["lon"] is not None:
        address = row.get("address")
        data["location"] = {"lat": data["lat"], "lon": data["lon"], "address": None if pd.isna(address) else address}
    data["id"] = str(data["id"])
    return WorkItem.from_dict(data)


def main() -> None:
    load_dotenv()
    args = parse_args()
    settings = load_settings()

    df = pd.read_csv(args.input)
    missing = [c for c in REQUIRED_COLS if c not in df.columns]
    if missing:
        raise SystemExit(f"Input is missing columns: {missing}")
    df = df.dropna(subset=["id"])
    print(f"Loaded rows: {len(df):,}")

    reports = [row_to_report(row) for _, row in df.iterrows()]
    store = InMemoryReportStore(reports)
    to_check = reports[args.start: args.start + args.limit]

    result = batch_check_duplicates(to_check, store=store, settings=settings)

    os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
    with open(args.output, "w", encoding="utf-8") as f:
        for item in result.items:
            f.write(json.dumps(item.to_dict()))
            f.write("\n")

    print(f"Checked {len(to_check)} reports")
    print(json.dumps(result.stats, indent=2))
    print(f"Wrote results to: {args.output}")


if __name__ == "__main__":
    main()
