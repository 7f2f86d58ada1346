#!/usr/bin/env python3
"""
Forecast Recompute Script

Recomputes stock forecasts for one organization, or for every organization
with active products, and prints what was stored.

Usage:
    python scripts/recompute_forecasts.py --organization <org-id>
    python scripts/recompute_forecasts.py --all
    python scripts/recompute_forecasts.py --organization <org-id> --json
    python scripts/recompute_forecasts.py --all --no-llm   # fallback text only
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import argparse
import json

from stockmaster.exceptions import StockmasterError
from stockmaster.models.base import SessionLocal, init_db
from stockmaster.services.forecast_service import StockForecastService
from stockmaster.services.llm_service import LLMService
from stockmaster.services.recommendation import RecommendationComposer


def _print_run(result):
    print(f"\n{'='*80}")
    print(f"  FORECASTS  -  {result.organization_id}")
    print(f"{'='*80}\n")
    print(f"  stored={result.total}  skipped={result.skipped}  deadline_exceeded={result.deadline_exceeded}\n")

    header = f"{'Produto':<30} {'Estoque':>10} {'Média/dia':>10} {'Dias':>8} {'Ruptura':>12} {'Perda':>10}"
    print(header)
    print("-" * len(header))
    for p in result.previsoes:
        dias = f"{p['dias_restantes']:.1f}" if p["dias_restantes"] is not None else "N/A"
        print(
            f"{(p['nome'] or p['produto_id'])[:30]:<30} {p['estoque_atual']:>10.1f} "
            f"{p['media_vendas_diaria']:>10.2f} {dias:>8} {p['data_ruptura'] or '-':>12} "
            f"{p['perda_financeira']:>10.2f}"
        )
    print()


def run(organizations=None, as_json=False, use_llm=True):
    init_db()
    db = SessionLocal()
    outcome = {}
    failed = 0

    try:
        composer = RecommendationComposer(LLMService() if use_llm else None)
        service = StockForecastService(db, composer=composer)
        targets = organizations or service.organizations_with_active_items()

        for organization_id in targets:
            try:
                result = service.recompute_forecasts(organization_id)
            except StockmasterError as e:
                failed += 1
                outcome[organization_id] = {"success": False, "error": e.message}
                if not as_json:
                    print(f"  {organization_id}: FAILED ({e.message})")
                continue

            outcome[organization_id] = result.to_dict()
            if not as_json:
                _print_run(result)
    finally:
        db.close()

    if as_json:
        print(json.dumps(outcome, indent=2, ensure_ascii=False))

    return 1 if failed else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Recompute stock depletion forecasts")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--organization", action="append", help="Organization id (repeatable)")
    target.add_argument("--all", action="store_true", help="Every organization with active products")
    parser.add_argument("--json", action="store_true", help="Machine-readable output")
    parser.add_argument("--no-llm", action="store_true", help="Skip the LLM and use the fallback text")
    args = parser.parse_args()

    sys.exit(run(
        organizations=None if args.all else args.organization,
        as_json=args.json,
        use_llm=not args.no_llm,
    ))
