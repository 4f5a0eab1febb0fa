#!/usr/bin/env python3
"""Synthetic vehicle list generator for manual and performance testing.

Writes a single-sheet workbook in the layout the ingest expects:
- Row 1: header row
- Row 2+: data rows

A configurable share of the vehicle numbers is deliberately broken (bad state
code, too short, wrong shape, blank) so the classifier's rejection path gets
exercised too. Valid numbers are spread across all supported RTO formats and
written with the spacing / dashes / lowercase seen in real uploads.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

STATES = ["DL", "HR", "UP", "MH", "KA", "TN", "GJ", "RJ", "WB", "PB"]
LETTERS = list("ABCDEFGHJKLMNPRSTUVWXYZ")
OWNERS = ["Sharma Logistics", "Gupta Transport", "Mehta Motors", "Rao Finance", "Singh Carriers"]
BRANCHES = ["Delhi", "Gurugram", "Noida", "Mumbai", "Pune", "Chennai"]


def _valid_number(rng: np.random.Generator) -> str:
    state = rng.choice(STATES)
    district = f"{rng.integers(1, 99):02d}"
    serial = f"{rng.integers(0, 9999):04d}"
    kind = rng.integers(0, 4)
    if kind == 0:
        return f"{state} {district} {''.join(rng.choice(LETTERS, 2))} {serial}"
    if kind == 1:
        return f"{state}-{district}-{rng.choice(LETTERS)}-{serial}".lower()
    if kind == 2:
        return f"{state}{district}{serial}"
    # older registrations: state + letter series + 2 alnum + 4-5 digits
    return f"{state}{''.join(rng.choice(LETTERS, 4))}{rng.integers(10, 99)}{rng.integers(0, 99999):05d}"


def _invalid_number(rng: np.random.Generator) -> str:
    kind = rng.integers(0, 4)
    if kind == 0:
        return f"XX{rng.integers(10, 99)}AB{rng.integers(1000, 9999)}"  # unknown state code
    if kind == 1:
        return f"DL{rng.integers(1, 9)}A{rng.integers(10, 99)}"  # too short
    if kind == 2:
        return "DL01AB12CD34"  # no pattern matches
    return ""


def generate_vehicle_data(rows: int, invalid_ratio: float = 0.05, seed: int = 42) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    broken = rng.random(rows) < invalid_ratio
    numbers = [_invalid_number(rng) if b else _valid_number(rng) for b in broken]
    start = pd.Timestamp("2024-01-01")
    return pd.DataFrame({
        "Vehicle No.": numbers,
        "Owner Name": rng.choice(OWNERS, rows).tolist(),
        "Branch": rng.choice(BRANCHES, rows).tolist(),
        "EMI Amount (Rs)": np.round(rng.uniform(2_000, 60_000, rows), 2).tolist(),
        "Due Date": [start + pd.Timedelta(days=int(d)) for d in rng.integers(0, 365, rows)],
        "Loan A/C #": [f"LN{n:08d}" for n in rng.integers(0, 99_999_999, rows)],
    })


def create_excel_file(output_path: Path, rows: int, invalid_ratio: float, seed: int) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df = generate_vehicle_data(rows, invalid_ratio, seed)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Vehicles", index=False)
    print(f"Created Excel file: {output_path}")
    print(f"  Rows: {rows} (+ 1 header row)")
    print(f"  Columns: {', '.join(df.columns)}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a synthetic vehicle list workbook")
    parser.add_argument("output", type=Path, help="Output .xlsx path")
    parser.add_argument("--rows", type=int, default=1_200, help="Data rows (default: 1,200)")
    parser.add_argument(
        "--invalid-ratio", type=float, default=0.05, help="Share of broken numbers (default: 0.05)"
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if not 0 <= args.invalid_ratio <= 1:
        print("Error: --invalid-ratio must be between 0 and 1", file=sys.stderr)
        return 1
    if args.output.suffix.lower() != ".xlsx":
        print("Error: output must be an .xlsx file", file=sys.stderr)
        return 1

    create_excel_file(args.output, args.rows, args.invalid_ratio, args.seed)
    return 0


if __name__ == "__main__":
    sys.exit(main())
