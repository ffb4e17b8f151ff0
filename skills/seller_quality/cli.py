"""CLI for seller_quality package."""

from __future__ import annotations

import argparse
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from .config import QualityConfig, load_config
from .mailer import GmailMailer, check_mail_transport
from .pipeline import build_run_summary, build_table, run
from .reporting.email_stats import build_email_stats_summary, compute_email_stats
from .reporting.system_check import run_system_check, system_check_passed
from .schedule import build_schedule_summary
from .tables import open_table_store
from .templates import TemplateRenderer
from .tracking import ResponseStore, TrackingStore
from .types import EmailType


def _parse_as_of(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise SystemExit(f"Invalid --as-of '{raw}', expected YYYY-MM-DD") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seller quality escalation emails")
    parser.add_argument("--data-dir", help="Directory for CSV-backed tables (overrides QUALITY_DATA_DIR)")
    parser.add_argument("--backend", choices=["csv", "sheets"], help="Table backend (overrides QUALITY_TABLE_BACKEND)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_run = sub.add_parser("run", help="Send this week's notifications")
    p_run.add_argument("--source", choices=["csv", "sheets", "history", "sample"], default="sheets")
    p_run.add_argument("--csv-path", help="Precomputed Seller Quality CSV (csv source)")
    p_run.add_argument("--kpi", help="Daily KPI history CSV (history source)")
    p_run.add_argument("--sellers", help="Seller directory CSV (history source)")
    p_run.add_argument("--contacts", help="Seller contacts CSV (history source)")
    p_run.add_argument("--as-of", help="YYYY-MM-DD; defaults to today in the configured timezone")
    p_run.add_argument("--out", default="output")
    p_run.add_argument("--dry-run", action="store_true", help="Render and count only; send nothing, write nothing")
    p_run.add_argument(
        "--no-interactive-auth",
        action="store_true",
        help="Disable browser OAuth fallback and require an existing Gmail send token",
    )

    p_build = sub.add_parser("build-table", help="Build the Seller Quality table from KPI history")
    p_build.add_argument("--kpi", required=True)
    p_build.add_argument("--sellers")
    p_build.add_argument("--contacts")
    p_build.add_argument("--as-of")
    p_build.add_argument("--out-path", help="Defaults to the Seller Quality table in the data directory")
    p_build.add_argument("--include-inactive", action="store_true", help="Keep sellers with no active streak")

    p_check = sub.add_parser("check", help="Run the system self-test")
    p_check.add_argument("--authorize", action="store_true", help="Run the Gmail OAuth flow before checking")

    sub.add_parser("stats", help="Print email open statistics")

    p_sched = sub.add_parser("schedule", help="Print the weekly cron entry and next run time")
    p_sched.add_argument("--command", dest="cron_command", default="python -m skills.seller_quality.cli run")

    p_update = sub.add_parser("update-status", help="Record a seller's response")
    p_update.add_argument("--seller-id", required=True)
    p_update.add_argument("--email-type", required=True, help="first_warning, last_warning or suspension")
    p_update.add_argument("--status", required=True, help="resolved, in_progress or free text")
    p_update.add_argument("--notes", default="")
    return parser


def _config_from_args(args: argparse.Namespace) -> QualityConfig:
    return load_config().with_overrides(data_dir=args.data_dir, table_backend=args.backend)


def _cmd_run(args: argparse.Namespace, config: QualityConfig) -> int:
    print("Run started.")
    try:
        result = run(
            args.source,
            config=config,
            out_dir=args.out,
            csv_path=args.csv_path,
            kpi_path=args.kpi,
            sellers_path=args.sellers,
            contacts_path=args.contacts,
            as_of=_parse_as_of(args.as_of),
            dry_run=args.dry_run,
            allow_interactive_auth=not args.no_interactive_auth,
        )
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    for line in build_run_summary(result):
        print(line)
    if args.dry_run:
        print("dry_run=true (no emails sent, no files written)")
    else:
        print(f"run_summary.json: {result.artifacts['json_path']}")
        print(f"action_breakdown.png: {result.artifacts['png_path']}")
    return 0


def _cmd_build_table(args: argparse.Namespace, config: QualityConfig) -> int:
    path, snapshots = build_table(
        config=config,
        kpi_path=args.kpi,
        sellers_path=args.sellers,
        contacts_path=args.contacts,
        out_path=args.out_path,
        as_of=_parse_as_of(args.as_of),
        include_inactive=args.include_inactive,
    )
    print(f"Wrote {len(snapshots)} sellers to {path}")
    return 0


def _cmd_check(args: argparse.Namespace, config: QualityConfig) -> int:
    if args.authorize:
        GmailMailer(config, allow_interactive_auth=True).service
    lines = run_system_check(
        config,
        open_store=open_table_store,
        renderer=TemplateRenderer(config),
        mail_check=check_mail_transport,
    )
    print("System Test Results")
    for line in lines:
        print(line)
    return 0 if system_check_passed(lines) else 1


def _cmd_stats(config: QualityConfig) -> int:
    tracking = TrackingStore(open_table_store(config), config)
    stats = compute_email_stats(tracking, datetime.now(ZoneInfo(config.timezone)))
    for line in build_email_stats_summary(stats):
        print(line)
    return 1 if stats.error else 0


def _cmd_update_status(args: argparse.Namespace, config: QualityConfig) -> int:
    try:
        email_type = EmailType.parse(args.email_type)
        responses = ResponseStore(open_table_store(config), config)
        result = responses.update_status(
            seller_id=args.seller_id,
            email_type=email_type,
            status=args.status,
            notes=args.notes,
            now=datetime.now(ZoneInfo(config.timezone)),
        )
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    print(result.message)
    return 0 if result.found else 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _config_from_args(args)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    if args.command == "run":
        return _cmd_run(args, config)
    if args.command == "build-table":
        return _cmd_build_table(args, config)
    if args.command == "check":
        return _cmd_check(args, config)
    if args.command == "stats":
        return _cmd_stats(config)
    if args.command == "schedule":
        for line in build_schedule_summary(datetime.now(ZoneInfo(config.timezone)), args.cron_command, config.timezone):
            print(line)
        return 0
    if args.command == "update-status":
        return _cmd_update_status(args, config)
    parser.error(f"unknown command {args.command!r}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
