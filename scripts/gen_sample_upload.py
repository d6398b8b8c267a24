#!/usr/bin/env python3
"""Sample upload generator.

Writes a synthetic financial upload CSV (client x product, 12 monthly
amounts) plus, optionally, a matching registry snippet for
config/import.yml. Three header styles are supported, mirroring what real
uploads look like:

- ``month``   Client Name, Product Name, Month 1 .. Month 12
- ``numeric`` Client Name, Product Name, 1 .. 12
- ``legacy``  Client Name, Product Name, March .. February (positional)
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import yaml

HEADER_STYLES = ("month", "numeric", "legacy")
LEGACY_MONTHS = (
    "March", "April", "May", "June", "July", "August",
    "September", "October", "November", "December", "January", "February",
)
PRODUCT_LINES = ("Consulting", "Licensing", "Support", "Training", "Hosting", "Hardware")


def month_headers(style: str) -> list[str]:
    if style == "month":
        return [f"Month {n}" for n in range(1, 13)]
    if style == "numeric":
        return [str(n) for n in range(1, 13)]
    if style == "legacy":
        return list(LEGACY_MONTHS)
    raise ValueError(f"unknown header style: {style}")


def generate_upload(
    clients: int,
    products_per_client: int,
    style: str = "month",
    seed: int = 42,
    unmatched_ratio: float = 0.0,
    duplicate_ratio: float = 0.0,
) -> pd.DataFrame:
    """Build the upload frame.

    ``unmatched_ratio`` replaces that share of client names with names the
    registry does not know; ``duplicate_ratio`` appends copies of existing
    client/product rows.
    """
    rng = np.random.default_rng(seed)
    products = list(PRODUCT_LINES[: max(1, min(products_per_client, len(PRODUCT_LINES)))])

    rows: list[list[object]] = []
    for c in range(clients):
        client_name = f"Client {c + 1:04d}"
        if rng.random() < unmatched_ratio:
            client_name = f"Unknown Client {c + 1:04d}"
        for product in products:
            amounts = np.round(rng.uniform(0, 25_000, 12), 2).tolist()
            rows.append([client_name, product, *amounts])

    n_duplicates = int(len(rows) * duplicate_ratio)
    if n_duplicates:
        picks = rng.choice(len(rows), size=n_duplicates, replace=False)
        rows.extend(list(rows[i]) for i in picks)

    return pd.DataFrame(rows, columns=["Client Name", "Product Name", *month_headers(style)])


def registry_snippet(clients: int) -> dict[str, object]:
    return {
        "registry": {
            "clients": [{"id": f"c{c + 1:04d}", "name": f"Client {c + 1:04d}"} for c in range(clients)],
            "product_lines": [{"id": f"p{i + 1}", "name": name} for i, name in enumerate(PRODUCT_LINES)],
        }
    }


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic financial upload CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data/actuals.csv --clients 500
  %(prog)s data/budget.csv --style legacy --unmatched 0.05 --duplicates 0.01
  %(prog)s data/ytd1.csv --registry config/registry.yml
        """,
    )
    parser.add_argument("output", type=Path, help="Output CSV path")
    parser.add_argument("--clients", type=int, default=100, help="Number of clients (default: 100)")
    parser.add_argument("--products", type=int, default=3, help="Product lines per client (default: 3)")
    parser.add_argument("--style", choices=HEADER_STYLES, default="month", help="Month header style")
    parser.add_argument("--unmatched", type=float, default=0.0, help="Share of unknown client names")
    parser.add_argument("--duplicates", type=float, default=0.0, help="Share of duplicated rows")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--registry", type=Path, help="Also write a registry YAML snippet here")
    args = parser.parse_args()

    if args.clients <= 0:
        print("Error: --clients must be positive", file=sys.stderr)
        return 1
    if not 0.0 <= args.unmatched <= 1.0 or not 0.0 <= args.duplicates <= 1.0:
        print("Error: ratios must be between 0 and 1", file=sys.stderr)
        return 1

    df = generate_upload(args.clients, args.products, args.style, args.seed, args.unmatched, args.duplicates)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(args.output, index=False)
    print(f"Created upload: {args.output} rows={len(df)} style={args.style}")

    if args.registry is not None:
        args.registry.parent.mkdir(parents=True, exist_ok=True)
        args.registry.write_text(yaml.safe_dump(registry_snippet(args.clients), sort_keys=False), encoding="utf-8")
        print(f"Created registry snippet: {args.registry}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
