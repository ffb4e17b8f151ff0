"""Weekly seller quality run: load the table, resolve actions, notify sellers."""

from __future__ import annotations

import json
from collections import Counter
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from .config import QualityConfig
from .dispatcher import NotificationDispatcher
from .escalation import EscalationResolver
from .mailer import DryRunMailer, GmailMailer, Mailer, split_addresses
from .quality_table import decode_row
from .reporting.action_chart import render_action_chart
from .sources.csv_source import load_quality_rows as load_csv_rows
from .sources.csv_source import write_quality_table
from .sources.history_source import load_contacts, load_kpi_rows, load_sellers
from .sources.sample_source import load_sample_rows
from .sources.sheets_source import load_quality_rows as load_sheet_rows
from .tables import CsvTableStore, MemoryTableStore, TableStore, open_table_store
from .templates import TemplateRenderer
from .tracking import ResponseStore, TrackingStore
from .types import (
    Action,
    DataAccessError,
    RunResult,
    RunStats,
    SellerSnapshot,
    SourceType,
    TemplateError,
)
from .weekly import build_snapshots, current_monday


def _run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _save_summary_json(path: Path, result: RunResult) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")


def default_table_path(config: QualityConfig) -> str:
    return str(CsvTableStore(config.data_dir).path_for(config.quality_sheet_name))


def _history_snapshots(
    config: QualityConfig,
    kpi_path: Optional[str],
    sellers_path: Optional[str],
    contacts_path: Optional[str],
    as_of: Optional[date],
    include_inactive: bool = False,
) -> list[SellerSnapshot]:
    if not kpi_path:
        raise ValueError("--kpi is required for the history source")
    monday = current_monday(as_of or datetime.now(ZoneInfo(config.timezone)).date())
    return build_snapshots(
        load_kpi_rows(kpi_path),
        load_sellers(sellers_path) if sellers_path else {},
        load_contacts(contacts_path) if contacts_path else {},
        monday,
        config,
        include_inactive=include_inactive,
    )


def load_rows(
    source: SourceType,
    config: QualityConfig,
    *,
    store: Optional[TableStore] = None,
    csv_path: Optional[str] = None,
) -> list[list[str]]:
    if source == "csv":
        return load_csv_rows(csv_path or default_table_path(config), config.header_row_count)
    if source == "sheets":
        return load_sheet_rows(store or open_table_store(config), config.quality_sheet_name, config.header_row_count)
    if source == "sample":
        return load_sample_rows()
    raise ValueError(f"source {source!r} does not provide table rows")


def build_run_summary(result: RunResult) -> list[str]:
    s = result.stats
    lines = [
        f"Run {result.run_id} complete.",
        f"Processed {s.processed} sellers, sent {s.emails_sent} emails, {s.errors} errors.",
        f"Skipped: no_action={s.skipped_no_action} no_email={s.skipped_no_email} excluded={s.excluded}",
        f"Addresses: invalid={s.invalid_addresses} failed={s.failed_addresses} store_errors={s.store_errors}",
    ]
    if s.template_fallbacks:
        lines.append(f"Template fallbacks: {s.template_fallbacks}")
    if s.data_errors:
        lines.append(f"Rows with data errors: {s.data_errors}")
    for action in sorted(Action, key=lambda a: -a.severity):
        count = s.actions.get(action.value, 0)
        if count:
            lines.append(f"  {action.value}: {count}")
    for warning in result.warnings:
        lines.append(f"Warning: {warning}")
    return lines


def run(
    source: SourceType,
    *,
    config: QualityConfig,
    out_dir: str = "output",
    csv_path: Optional[str] = None,
    kpi_path: Optional[str] = None,
    sellers_path: Optional[str] = None,
    contacts_path: Optional[str] = None,
    as_of: Optional[date] = None,
    dry_run: bool = False,
    store: Optional[TableStore] = None,
    mailer: Optional[Mailer] = None,
    allow_interactive_auth: bool = False,
    clock: Optional[Callable[[], datetime]] = None,
) -> RunResult:
    tz = ZoneInfo(config.timezone)
    now = clock or (lambda: datetime.now(tz))
    started_at = now()
    run_id = _run_id()
    stats = RunStats()
    warnings: list[str] = []

    if dry_run:
        # Nothing leaves the process: messages are captured and tracking rows stay in memory.
        table_store: TableStore = MemoryTableStore()
        transport: Mailer = mailer or DryRunMailer()
    else:
        table_store = store or open_table_store(config)
        transport = mailer or GmailMailer(config, allow_interactive_auth=allow_interactive_auth)

    if source == "history":
        snapshots: list[Optional[SellerSnapshot]] = list(
            _history_snapshots(config, kpi_path, sellers_path, contacts_path, as_of)
        )
        raw_rows: list[list[str]] = []
    else:
        raw_rows = load_rows(source, config, store=store if dry_run else table_store, csv_path=csv_path)
        snapshots = [None] * len(raw_rows)
    print(f"[RUN START] run_id={run_id} source={source} rows={len(snapshots)} dry_run={dry_run}", flush=True)

    resolver = EscalationResolver(config)
    dispatcher = NotificationDispatcher(
        config=config,
        renderer=TemplateRenderer(config),
        mailer=transport,
        tracking=TrackingStore(table_store, config),
        responses=ResponseStore(table_store, config),
        clock=now,
    )
    actions: Counter[str] = Counter()

    for idx, prebuilt in enumerate(snapshots):
        row_number = idx + config.header_row_count + 1
        if prebuilt is None:
            try:
                snapshot = decode_row(raw_rows[idx])
            except DataAccessError as exc:
                print(f"[ROW ERROR] row={row_number} error={exc}", flush=True)
                stats.data_errors += 1
                stats.errors += 1
                warnings.append(f"row_{row_number}: {exc}")
                continue
        else:
            snapshot = prebuilt

        stats.processed += 1
        if resolver.is_excluded(snapshot):
            stats.excluded += 1
            continue
        warnings.extend(resolver.apply(snapshot))
        actions[snapshot.final_action.value] += 1

        if snapshot.final_action is Action.NO_ACTION:
            stats.skipped_no_action += 1
            continue
        if not split_addresses(snapshot.email):
            print(f"[SEND SKIP] seller_id={snapshot.seller_id} reason=no_email", flush=True)
            stats.skipped_no_email += 1
            continue

        try:
            outcome = dispatcher.dispatch(snapshot)
        except (TemplateError, DataAccessError) as exc:
            print(f"[SELLER ERROR] seller_id={snapshot.seller_id} error={exc}", flush=True)
            stats.errors += 1
            warnings.append(f"seller_{snapshot.seller_id}: {exc}")
            continue
        except Exception as exc:  # noqa: BLE001
            print(
                f"[SELLER ERROR] seller_id={snapshot.seller_id} error={type(exc).__name__}: {exc}",
                flush=True,
            )
            stats.errors += 1
            warnings.append(f"seller_{snapshot.seller_id}: unexpected {type(exc).__name__}: {exc}")
            continue

        stats.emails_sent += len(outcome.sent)
        stats.invalid_addresses += len(outcome.invalid)
        stats.failed_addresses += len(outcome.failed)
        stats.errors += len(outcome.failed)
        if outcome.store_errors:
            stats.store_errors += len(outcome.store_errors)
            stats.errors += len(outcome.store_errors)
            warnings.extend(f"seller_{snapshot.seller_id}: {e}" for e in outcome.store_errors)
        if outcome.used_fallback:
            stats.template_fallbacks += 1
            warnings.append(f"template_fallback: seller_id={snapshot.seller_id}")

    stats.actions = dict(actions)
    out = Path(out_dir).expanduser().resolve()
    summary_path = out / "run_summary.json"
    chart_path = out / "action_breakdown.png"
    result = RunResult(
        run_id=run_id,
        started_at=started_at,
        stats=stats,
        artifacts={"json_path": str(summary_path), "png_path": str(chart_path)} if not dry_run else {},
        warnings=warnings,
    )

    if not dry_run:
        try:
            render_action_chart(stats.actions, f"Seller Quality Actions ({started_at.date().isoformat()})", str(chart_path))
        except Exception as exc:  # noqa: BLE001
            result.warnings.append(f"chart_render_failed: {exc}")
        _save_summary_json(summary_path, result)

    print(
        f"[RUN END] run_id={run_id} processed={stats.processed} sent={stats.emails_sent} errors={stats.errors}",
        flush=True,
    )
    return result


def build_table(
    *,
    config: QualityConfig,
    kpi_path: str,
    sellers_path: Optional[str] = None,
    contacts_path: Optional[str] = None,
    out_path: Optional[str] = None,
    as_of: Optional[date] = None,
    include_inactive: bool = False,
) -> tuple[str, list[SellerSnapshot]]:
    snapshots = _history_snapshots(config, kpi_path, sellers_path, contacts_path, as_of, include_inactive)
    path = write_quality_table(out_path or default_table_path(config), snapshots)
    print(f"[TABLE] rows={len(snapshots)} path={path}", flush=True)
    return path, snapshots
