from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from dotenv import load_dotenv

from roster_sync.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from roster_sync.excel.store import ExcelTableStore
from roster_sync.logging.init import get_logger, log_summary, set_debug, setup_logging
from roster_sync.models.config_models import ReconcileConfig
from roster_sync.models.reconcile_models import IdentifierChangeEvent
from roster_sync.reconcile.apply import ConfirmCallback
from roster_sync.services.orchestrator import (
    INCOMING_TABLE,
    ROSTER_TABLE,
    run_contact_dedupe,
    run_phone_normalization,
    run_reconciliation,
)
from roster_sync.services.summary import render_outcome_message, render_summary_line
from roster_sync.store.base import TableStoreError

"""CLI entrypoint.

Flow:
- Load .env, then the YAML config (--config > $ROSTER_SYNC_CONFIG > config/reconcile.yml)
- Run one command against the configured workbooks (default: reconcile)
- Print the SUMMARY line and an outcome message

Exit codes: 0 success, 1 fatal (nothing was changed), 2 some member ID updates failed.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

CONFIG_ENV_VAR = "ROSTER_SYNC_CONFIG"
COMMANDS = ("reconcile", "phones", "contacts")
INSPECT_SAMPLE_ROWS = 3


def _load_env_file(path: Path) -> None:
    """Load .env with python-dotenv; variables already set in the process win."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=False)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="roster-sync", description="Reconcile an imported member export against the roster")
    p.add_argument("command", nargs="?", choices=COMMANDS, default="reconcile", help="What to run (default: reconcile)")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default: ${CONFIG_ENV_VAR} or {DEFAULT_CONFIG_PATH})")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print table headers & first rows then exit")
    p.add_argument("--yes", action="store_true", help="Apply member ID changes without asking")
    return p.parse_args(argv)


def _resolve_config_path(arg: Path | None) -> Path:
    if arg is not None:
        return arg
    env = os.getenv(CONFIG_ENV_VAR)
    if env:
        return Path(env)
    return DEFAULT_CONFIG_PATH


def _build_store(cfg: ReconcileConfig) -> ExcelTableStore:
    return ExcelTableStore({ROSTER_TABLE: cfg.roster, INCOMING_TABLE: cfg.incoming})


def _terminal_confirm(events: Sequence[IdentifierChangeEvent]) -> bool:
    """Ask on the terminal whether the queued member ID changes may be written."""
    logger = get_logger()
    print(f"{len(events)} member ID change(s) found:")
    for ev in events:
        print(f"  row {ev.target_row}: {ev.display_name}  {ev.old_id} -> {ev.new_id}")
    if not sys.stdin.isatty():
        logger.info("stdin is not a terminal; member ID changes left pending (use --yes to apply)")
        return False
    try:
        answer = input("Apply these member ID changes? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _approve_all(events: Sequence[IdentifierChangeEvent]) -> bool:
    return True


def _inspect_data(cfg: ReconcileConfig) -> int:
    store = _build_store(cfg)
    for name, source in ((ROSTER_TABLE, cfg.roster), (INCOMING_TABLE, cfg.incoming)):
        print(f"TABLE: {name} ({source.path} / {source.sheet})")
        try:
            table = store.read_table(name)
        except TableStoreError as e:
            print(f"  read_error: {e}")
            return EXIT_FATAL
        print(f"  rows={len(table)} cols={table.columns}")
        for row in table.rows[:INSPECT_SAMPLE_ROWS]:
            # datetime 含む場合は isoformat で表示
            safe = {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in row.values.items()}
            print(f"    row {row.row_number}: {safe}")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    # NOTE: argv=[] (テストからの呼び出し) で sys.argv が混入しないよう None のときだけ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    _load_env_file(Path(".env"))

    config_path = _resolve_config_path(args.config)
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if cfg.debug and not args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled by config")

    if args.inspect_data:
        return _inspect_data(cfg)

    store = _build_store(cfg)
    logger.info(f"command={args.command} roster={cfg.roster.path} incoming={cfg.incoming.path}")
    if args.command == "phones":
        label = "Phone normalization"
        result = run_phone_normalization(cfg, store)
    elif args.command == "contacts":
        label = "Contact de-duplication"
        result = run_contact_dedupe(cfg, store)
    else:
        label = "Reconciliation"
        confirm: ConfirmCallback = _approve_all if args.yes else _terminal_confirm
        result = run_reconciliation(cfg, store, confirm=confirm)

    if not result.ok:
        logger.error(render_outcome_message(result, label))
        return EXIT_FATAL

    # log_summary が "SUMMARY " を付けるので本文だけ渡す
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    logger.info(render_outcome_message(result, label))

    if result.apply_report is not None and result.apply_report.has_failures:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
