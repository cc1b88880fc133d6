"""
Console dialog for the operator
"""

from __future__ import annotations

from typing import Callable

from .run_log import RunOutcome
from .session import ImportSession


def ask_import_details(
    session: ImportSession,
    month: str | None = None,
    url: str | None = None,
    input_fn: Callable[[str], str] = input,
) -> tuple[str, str]:
    """
    Show the resolved billing month and ask for confirmation and the file URL.

    Values already given on the command line are not asked for again.

    Args:
        session: Session opened for the import
        month: Billing month passed on the command line
        url: Source file URL passed on the command line
        input_fn: Function used to read operator input

    Returns:
        Confirmed billing month and source file URL
    """
    state = "confirmed" if session.confirmed else "not yet confirmed"
    print(f"\n📅 Billing month: {session.label} (tracking row {session.row}, {state})")

    if month is None:
        answer = input_fn(f"Confirm billing month [{session.label}]: ").strip()
        month = answer or session.label

    if url is None:
        url = input_fn("URL of the billing export: ").strip()

    return month, url


def show_outcome(outcome: RunOutcome, title: str) -> None:
    """Print a stage result followed by its full log."""
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)
    print(outcome["message"])
    print("\n--- Run log ---")
    print(outcome["logs"])
