"""
Billing ingestion - monthly import and clean-up of billing exports

Two commands mirror the workbook menu:
  import   Import XLS for Billing Month (stage 1)
  process  Run Additional Processing (stage 2)
"""

from __future__ import annotations

import argparse
from pathlib import Path

from . import config
from .pipeline import import_billing_month, open_import_dialog, process_billing_month
from .run_log import RunLog
from .session import StateStore
from .ui import ask_import_details, show_outcome

IMPORT_TITLE = "Import XLS for Billing Month"
PROCESS_TITLE = "Run Additional Processing"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="billing-ingest", description="Monthly billing import and clean-up."
    )
    parser.add_argument(
        "--workbook", default=config.WORKBOOK_FILE, help="Path to the tracking workbook (.ods)"
    )
    parser.add_argument(
        "--state-file", default=config.STATE_FILE, help="Path to the session/state file"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_cmd = subparsers.add_parser("import", help=IMPORT_TITLE)
    import_cmd.add_argument("--month", help="Confirmed billing month, e.g. Feb-25")
    import_cmd.add_argument("--url", help="URL of the billing export")

    process_cmd = subparsers.add_parser("process", help=PROCESS_TITLE)
    process_cmd.add_argument(
        "--sheet", help="Raw sheet to process (defaults to the active sheet)"
    )
    return parser


def run_import_command(args: argparse.Namespace) -> bool:
    store = StateStore(args.state_file)

    session, prepared = open_import_dialog(args.workbook, store, RunLog())
    if session is None:
        show_outcome(prepared, IMPORT_TITLE)
        return False

    month, url = ask_import_details(session, args.month, args.url)
    outcome = import_billing_month(month, url, args.workbook, store=store, log=RunLog())
    show_outcome(outcome, IMPORT_TITLE)
    return outcome["success"]


def run_process_command(args: argparse.Namespace) -> bool:
    outcome = process_billing_month(
        args.sheet, args.workbook, store=StateStore(args.state_file), log=RunLog()
    )
    show_outcome(outcome, PROCESS_TITLE)
    return outcome["success"]


def main(argv: list[str] | None = None) -> int:
    """Run the billing ingestion CLI."""
    args = build_parser().parse_args(argv)
    print(f"=== BILLING INGEST ({Path(args.workbook).name}) ===")

    if args.command == "import":
        ok = run_import_command(args)
    else:
        ok = run_process_command(args)

    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
