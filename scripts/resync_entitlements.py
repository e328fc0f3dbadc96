"""
Re-fetch a customer's entitlements from AWS Marketplace and reconcile them.

Safe to run repeatedly: unchanged values are skipped, so a second run
writes nothing unless Marketplace reports a change.

    python scripts/resync_entitlements.py --customer CUST --product PROD
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

# Make backend package importable when running from repo root.
sys.path.append(str(ROOT / "backend"))

from marketplace_onboarding.api.dependencies import get_reconciler  # noqa: E402
from marketplace_onboarding.entitlements.errors import ReconciliationError  # noqa: E402
from marketplace_onboarding.marketplace.client import MarketplaceClient, MarketplaceError  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--customer", required=True, help="Marketplace customer identifier")
    parser.add_argument("--product", required=True, help="Marketplace product code")
    args = parser.parse_args(argv)

    try:
        observations = MarketplaceClient.from_settings().get_entitlements(args.customer, args.product)
    except MarketplaceError as exc:
        print(f"Marketplace error {exc.code}: {exc.message}", file=sys.stderr)
        return 2
    if not observations:
        print("No entitlements found.")
        return 1

    try:
        result = get_reconciler().reconcile(observations)
    except ReconciliationError as exc:
        print(f"Reconciliation failed ({exc.code}): {exc.message}", file=sys.stderr)
        return 2

    print(
        f"Reconciled {len(result.results)} entitlements: "
        f"{result.created} created, {result.appended} appended, {result.unchanged} unchanged."
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
