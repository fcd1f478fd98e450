# =============================================
# File: rechargeace/cli/recommend.py
# Purpose: CLI entrypoint printing a recommendation as JSON.
# Usage:
#   python -m rechargeace.cli.recommend --provider Airtel --data 1.5 --validity 28
# =============================================
from __future__ import annotations
import argparse
import json
import sys

from pydantic import ValidationError

from rechargeace.services.advisory import get_advisor
from rechargeace.services.catalog import CatalogError, PlanCatalog, get_catalog
from rechargeace.services.models import Preference
from rechargeace.services.recommender import recommend


def main(argv=None):
    ap = argparse.ArgumentParser(description="Recommend recharge plans for a provider and usage profile.")
    ap.add_argument("--provider", required=True, help="Telecom provider, e.g. Airtel or Jio (case-insensitive)")
    ap.add_argument("--data", type=float, required=True, help="Daily data needed, in GB (e.g. 1.5)")
    ap.add_argument("--validity", type=int, required=True, help="Desired validity, in days (e.g. 28)")
    ap.add_argument("--location", default=None, help="Optional location (informational only)")
    ap.add_argument("--catalog", default=None, help="Plan catalog JSON (default: CATALOG_PATH or packaged plans)")
    ap.add_argument("--advisory", action="store_true", help="Let the configured advisor add wording (needs ADVISORY_ENABLED and OPENAI_API_KEY)")
    args = ap.parse_args(argv)

    try:
        pref = Preference(
            daily_data_gb=args.data,
            validity_days=args.validity,
            provider=args.provider,
            location=args.location,
        )
    except ValidationError as e:
        ap.error(f"invalid preference: {e.errors()[0].get('msg')}")

    try:
        catalog = PlanCatalog.from_json(args.catalog) if args.catalog else get_catalog()
    except CatalogError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(1)

    advisor = get_advisor() if args.advisory else None
    rec = recommend(pref, catalog=catalog, advisor=advisor)
    print(json.dumps(rec.to_wire(), indent=2, ensure_ascii=False))

if __name__ == "__main__":
    main()
