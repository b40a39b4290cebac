# backend/oran_payments/cli/__main__.py
from __future__ import annotations

import argparse
import json
import sys

from ..db import SessionLocal, init_db
from ..logging_config import configure_logging
from ..services.settlement_service import retry_failed_effects
from .seed_demo import seed_demo


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="oran_payments.cli", description="ORAN payment milestones operations CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seed-demo", help="create a demo customer, project and selected quote")

    retry = sub.add_parser("retry-effects", help="re-run failed or pending settlement effects")
    retry.add_argument("--project-id", type=int, default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    db = SessionLocal()
    try:
        if args.command == "seed-demo":
            init_db()
            result = seed_demo(db)
        else:
            result = retry_failed_effects(db, project_id=args.project_id)
    finally:
        db.close()

    print(json.dumps(result, indent=2, default=str))
    if args.command == "retry-effects" and result.get("failed"):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
