"""Entry point: wire settings, stores, bus and pipeline; run one request per invocation."""

import argparse
import asyncio
import getpass
import logging
import sys
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from matchday import secrets
from matchday.alerts import Alerter, LogAlerter, WebhookAlerter
from matchday.delivery import (
    BatchKind,
    DateRange,
    DeliveryPipeline,
    DeliveryResult,
    LiveMatchEvent,
    WebhookClient,
)
from matchday.errors import CollaboratorUnavailable
from matchday.events import Event, EventBus
from matchday.logging_config import setup_logging
from matchday.rows import MatchRowStore, load_rows_file
from matchday.settings import get_setting, load_settings
from matchday.store import IdempotencyStore, JsonFileStore

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


@dataclass
class App:
    """Everything one invocation needs. Created at start, closed at exit."""

    pipeline: DeliveryPipeline
    rows: MatchRowStore
    bus: EventBus
    idempotency: IdempotencyStore
    live_idempotency: IdempotencyStore | None = None
    lookahead_days: int = 10
    lookback_days: int = 7

    async def close(self) -> None:
        await self.rows.close()


def _resolve(path: str) -> Path:
    p = Path(path)
    return p if p.is_absolute() else _PROJECT_ROOT / p


async def _log_event(event: Event) -> None:
    logger.info("event %s %s", event.name, event.data)


def _build_event_bus(settings: dict) -> EventBus:
    bus = EventBus(retry_base_delay=get_setting(settings, "event_bus.retry_base_delay", 1.0))
    bus.subscribe("*", _log_event, priority=-100)
    return bus


def _build_idempotency(settings: dict) -> tuple[IdempotencyStore, IdempotencyStore]:
    """Batch store and live-event store, sharing one durable file."""
    cfg = settings.get("idempotency", {})
    durable = JsonFileStore(_resolve(cfg.get("path", "data/idempotency.json")))
    batches = IdempotencyStore(
        durable,
        namespace=cfg.get("namespace", "MAKE_IDEMPOTENCY_KEYS"),
        cache_ttl=float(cfg.get("cache_ttl", 21600)),
        durable_ttl=float(cfg.get("durable_ttl", 86400)),
    )
    window = float(cfg.get("live_window", 300))
    live = IdempotencyStore(
        durable,
        namespace=cfg.get("live_namespace", "MAKE_LIVE_EVENT_KEYS"),
        cache_ttl=window,
        durable_ttl=window,
    )
    return batches, live


def _build_webhook(settings: dict) -> WebhookClient | None:
    cfg = settings.get("webhook", {})
    url = secrets.get_secret(cfg.get("url_secret", "MAKE_WEBHOOK_URL"))
    if not url:
        return None
    return WebhookClient(
        url,
        timeout=float(cfg.get("timeout", 30.0)),
        retry_attempts=int(cfg.get("retry_attempts", 3)),
        retry_delay=float(cfg.get("retry_delay", 2.0)),
        rate_limit_interval=float(cfg.get("rate_limit_interval", 1.0)),
    )


def _build_alerter(settings: dict) -> Alerter:
    url_secret = get_setting(settings, "alerts.webhook_url_secret", "ALERT_WEBHOOK_URL")
    url = secrets.get_secret(url_secret) if url_secret else None
    return WebhookAlerter(url) if url else LogAlerter()


def build_app(settings: dict[str, Any]) -> App:
    rows = MatchRowStore(_resolve(get_setting(settings, "rows.db_path", "data/matches.db")))
    bus = _build_event_bus(settings)
    idempotency, live_idempotency = _build_idempotency(settings)
    pipeline = DeliveryPipeline(
        rows=rows,
        idempotency=idempotency,
        live_idempotency=live_idempotency,
        bus=bus,
        webhook=_build_webhook(settings),
        alerter=_build_alerter(settings),
        club_name=get_setting(settings, "club.name", ""),
        season=get_setting(settings, "club.season", ""),
        system_version=get_setting(settings, "club.system_version", ""),
        alert_on_exhaustion=bool(get_setting(settings, "webhook.alert_on_exhaustion", True)),
        simulation_mode=bool(get_setting(settings, "webhook.simulation_mode", False)),
    )
    return App(
        pipeline=pipeline,
        rows=rows,
        bus=bus,
        idempotency=idempotency,
        live_idempotency=live_idempotency,
        lookahead_days=int(get_setting(settings, "batches.lookahead_days", 10)),
        lookback_days=int(get_setting(settings, "batches.lookback_days", 7)),
    )


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from e


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="matchday", description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    for kind in BatchKind:
        p = sub.add_parser(kind.value, help=f"post eligible {kind.value} as one batch")
        p.add_argument("--round", dest="round_id", default=None)
        p.add_argument("--from", dest="start", type=_parse_date, default=None)
        p.add_argument("--to", dest="end", type=_parse_date, default=None)

    live = sub.add_parser("live", help="post a single live match event")
    live.add_argument("--match", dest="match_id", required=True)
    live.add_argument("--event", dest="event_type", required=True)
    live.add_argument("--minute", type=int, default=None)
    live.add_argument("--player", default=None)
    live.add_argument("--assist", default=None)
    live.add_argument("--card", dest="card_type", default=None)
    live.add_argument("--opponent", default=None)
    live.add_argument("--home", dest="home_score", type=int, default=None)
    live.add_argument("--away", dest="away_score", type=int, default=None)

    imp = sub.add_parser("import-rows", help="load match rows from a YAML file")
    imp.add_argument("file", type=Path)

    forget = sub.add_parser("forget", help="drop an idempotency key so it can be re-sent")
    forget.add_argument("key")

    sec = sub.add_parser("set-secret", help="store a secret (e.g. MAKE_WEBHOOK_URL) in the keyring")
    sec.add_argument("name")
    sec.add_argument("--delete", action="store_true")
    return parser


def default_window(
    kind: BatchKind, today: date, lookahead_days: int, lookback_days: int
) -> DateRange:
    """Window used when --from/--to are omitted: results look back, the rest look ahead."""
    if kind == BatchKind.RESULTS:
        return DateRange(start=today - timedelta(days=lookback_days), end=today)
    return DateRange(start=today, end=today + timedelta(days=lookahead_days))


def _invalid(reason: str) -> tuple[bool, str]:
    logger.warning("rejected input: %s", reason)
    return False, DeliveryResult.invalid(reason).model_dump_json(indent=2)


async def run_command(app: App, args: argparse.Namespace) -> tuple[bool, str]:
    """Execute one parsed command. Returns (ok, output).

    Bad input (an inverted window, an out-of-range minute, a malformed rows
    file) is reported as an invalid result rather than raised.
    """
    if args.command in {k.value for k in BatchKind}:
        kind = BatchKind(args.command)
        window = default_window(kind, date.today(), app.lookahead_days, app.lookback_days)
        try:
            date_range = DateRange(
                start=args.start or window.start, end=args.end or window.end
            )
        except ValueError as e:
            return _invalid(str(e))
        result = await app.pipeline.post_batch(kind, args.round_id, date_range)
        return result.success, result.model_dump_json(indent=2)
    if args.command == "live":
        try:
            event = _live_event(args)
        except ValueError as e:
            return _invalid(str(e))
        result = await app.pipeline.post_live_event(event)
        return result.success, result.model_dump_json(indent=2)
    if args.command == "import-rows":
        try:
            rows = load_rows_file(args.file)
        except (ValueError, yaml.YAMLError, OSError) as e:
            return _invalid(f"{args.file}: {e}")
        count = await app.rows.upsert_many(rows)
        return True, f"imported {count} rows"
    if args.command == "forget":
        stores = [app.idempotency] + ([app.live_idempotency] if app.live_idempotency else [])
        removed = False
        try:
            for store in stores:
                removed = await store.forget(args.key) or removed
        except CollaboratorUnavailable as e:
            return False, str(e)
        return True, f"{args.key}: {'removed' if removed else 'not found'}"
    raise ValueError(f"unknown command {args.command!r}")


def _live_event(args: argparse.Namespace) -> LiveMatchEvent:
    return LiveMatchEvent(
        match_id=args.match_id,
        event_type=args.event_type,
        minute=args.minute,
        player=args.player,
        assist=args.assist,
        card_type=args.card_type,
        opponent=args.opponent,
        home_score=args.home_score,
        away_score=args.away_score,
    )


async def main_async(argv: list[str]) -> int:
    args = _build_parser().parse_args(argv)
    if args.command == "set-secret":
        if args.delete:
            secrets.delete_secret(args.name)
        else:
            secrets.set_secret(args.name, getpass.getpass(f"{args.name}: "))
        return 0

    settings = load_settings()
    setup_logging(_PROJECT_ROOT, settings)
    app = build_app(settings)
    try:
        ok, output = await run_command(app, args)
    finally:
        await app.close()
    print(output)
    return 0 if ok else 1


def main() -> None:
    """Synchronous entry for `python -m matchday`."""
    load_dotenv(_PROJECT_ROOT / ".env")
    try:
        code = asyncio.run(main_async(sys.argv[1:]))
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


__all__ = ["App", "build_app", "main", "run_command"]
