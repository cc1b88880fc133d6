"""
Workbook backup and restore around a stage run
"""

from __future__ import annotations

import shutil
from datetime import datetime as dt
from pathlib import Path


def create_backup(file_path: str | Path) -> Path:
    """
    Create a timestamped copy of the workbook next to it.

    Args:
        file_path: Path to the workbook

    Returns:
        Path to the backup file
    """
    source = Path(file_path)
    timestamp = dt.now().strftime("%Y%m%d_%H%M%S")
    backup_path = source.with_name(f"{source.stem}_backup_{timestamp}{source.suffix}")
    shutil.copy2(source, backup_path)
    return backup_path


def restore_from_backup(backup_path: str | Path, target_path: str | Path) -> None:
    shutil.copy2(backup_path, target_path)


def remove_backup(backup_path: str | Path) -> None:
    Path(backup_path).unlink(missing_ok=True)
