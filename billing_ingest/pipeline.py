"""
Stage pipeline for monthly billing imports

Stage 1 imports the billing export into a ``"<Mon-YY> (RAW)"`` sheet and
ticks the tracking row. Stage 2 copies the raw sheet to
``"<Mon-YY> (STG1)"``, cleans the name column, adds the entity type column
and records completion on the tracking row. Both stages can be re-run.
"""

# pyright: reportGeneralTypeIssues=false

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from odf import table
from odf.namespaces import TABLENS
from odf.opendocument import OpenDocument, load

from . import config
from .classifier import EntityClassifier, build_classifier
from .errors import (
    ExternalServiceError,
    NotFoundError,
    PatternMismatchError,
    ValidationError,
)
from .file_store import FileStore, read_first_sheet
from .file_utils import create_backup, remove_backup, restore_from_backup
from .ods_rows import SheetGrid
from .ods_sheets import (
    duplicate_sheet,
    find_sheet_by_name,
    get_active_sheet_name,
    get_or_create_cleared_sheet,
    write_rows,
)
from .ods_styles import ensure_header_style_exists
from .periods import (
    label_from_raw_sheet_name,
    last_month_label,
    raw_sheet_name,
    stage2_status,
    staged_sheet_name,
)
from .run_log import RunLog, RunOutcome
from .session import ImportSession, PipelineState, StateStore
from .substitutions import load_substitution_map, substitute_column, trim_column
from .tracking import (
    TrackingMatch,
    find_tracking_row,
    mark_import_completed,
    mark_stage2_completed,
    read_status,
)
from .validators import extract_file_id, validate_period_label

HEADER_ROW = 1
FIRST_DATA_ROW = 2


@dataclass(frozen=True)
class StagedLayout:
    """Column positions of the staged sheet.

    The name column starts in A and moves to B once the entity type column
    has been inserted in front of it.
    """

    name_col: int
    entity_col: int | None = None

    @classmethod
    def detect(cls, grid: SheetGrid) -> "StagedLayout":
        header: Any = grid.get(HEADER_ROW, 0)
        if isinstance(header, str) and header.strip() == config.ENTITY_TYPE_HEADER:
            return cls(name_col=1, entity_col=0)
        return cls(name_col=0)

    def with_entity_column(self) -> "StagedLayout":
        return StagedLayout(name_col=self.name_col + 1, entity_col=0)


@contextmanager
def open_workbook(path: str | Path, log: RunLog) -> Iterator[OpenDocument]:
    """Load the workbook and save it when the block finishes without error.

    A timestamped backup is taken first and copied back if anything fails,
    so a failed stage leaves the file as it was.
    """
    workbook = Path(path)
    if not workbook.exists():
        raise NotFoundError(f"Workbook '{workbook}' not found")

    backup_path: Path = create_backup(workbook)
    log.log(f"Backup created: {backup_path.name}")

    try:
        doc: OpenDocument = load(str(workbook))
        yield doc
        doc.save(str(workbook))
        log.log(f"✓ Saved {workbook.name}")
    except Exception:
        restore_from_backup(backup_path, workbook)
        log.warn("Workbook restored from backup")
        raise
    finally:
        remove_backup(backup_path)


def _find_tracking_row_or_none(
    doc: OpenDocument, label: str, log: RunLog | None = None
) -> TrackingMatch | None:
    """Tracking row lookup for callers that carry on without one."""
    try:
        return find_tracking_row(doc, label)
    except NotFoundError as e:
        if log is not None:
            log.warn(str(e))
        return None


def infer_state_from_workbook(doc: OpenDocument, label: str) -> PipelineState:
    """Work out how far a period got from the sheets present in the workbook."""
    staged: table.Table | None = find_sheet_by_name(doc, staged_sheet_name(label))
    if staged is not None:
        match = _find_tracking_row_or_none(doc, label)
        if match is not None and read_status(doc, match.row) == stage2_status(label):
            return PipelineState.COMPLETED
        layout = StagedLayout.detect(SheetGrid(staged, doc))
        if layout.entity_col is not None:
            return PipelineState.CLASSIFIED
        return PipelineState.STAGED

    if find_sheet_by_name(doc, raw_sheet_name(label)) is not None:
        return PipelineState.IMPORTED

    return PipelineState.NOT_STARTED


def check_recorded_state(
    doc: OpenDocument, label: str, store: StateStore, log: RunLog
) -> PipelineState:
    """Compare the recorded state of a period with the workbook.

    Disagreement is logged, never fatal. A workbook behind the record
    usually means sheets were deleted or renamed by hand; one ahead of it
    means a run finished without its state being recorded. Returns the
    recorded state.
    """
    recorded: PipelineState = store.get_state(label)
    observed: PipelineState = infer_state_from_workbook(doc, label)
    if recorded != observed:
        direction: str = "behind" if observed.rank < recorded.rank else "ahead of"
        log.warn(
            f"{label}: recorded state is {recorded.value} "
            f"but the workbook looks {observed.value} ({direction} the record)"
        )
    return recorded


# ==============================================================================
# STAGE 1: IMPORT
# ==============================================================================


def prepare_import(
    doc: OpenDocument, log: RunLog, store: StateStore, today: Any = None
) -> ImportSession:
    """Resolve last month's label, find its tracking row and open a session.

    :raises NotFoundError: If the tracking row is missing
    """
    label: str = last_month_label(today)
    log.log(f"Billing month: {label}")

    match = find_tracking_row(doc, label)
    if match is None:
        raise NotFoundError(
            f"No row for {label} in rows {config.TRACKING_FIRST_ROW}-"
            f"{config.TRACKING_LAST_ROW} of '{config.TRACKING_SHEET}'"
        )
    log.log(f"Tracking row {match.row} (confirmed: {match.confirmed})")

    session = ImportSession(
        label=label,
        row=match.row,
        confirmed=match.confirmed,
        sheet_name=config.TRACKING_SHEET,
    )
    store.save_session(session)
    return session


def file_to_table(file_store: FileStore, file_id: str, log: RunLog) -> list[list[Any]]:
    """Read a stored billing export into rows.

    ODS files are read directly. Anything else is converted through a
    temporary hosted copy, which is deleted whether or not reading works.
    """
    metadata: dict[str, Any] = file_store.metadata(file_id)
    file_name: str = str(metadata.get("name") or file_id)
    log.log(f"Source file: {file_name}")

    if metadata.get("mimeType") == config.ODS_EXPORT_MIME:
        return read_first_sheet(file_store.fetch(file_id))

    converted_id: str | None = None
    try:
        converted_id = file_store.convert(file_id, name=f"{file_name} (converted)")
        log.log(f"Converted to temporary file {converted_id}")
        return file_store.export_rows(converted_id)
    finally:
        if converted_id is not None:
            try:
                file_store.delete(converted_id)
                log.log(f"Deleted temporary file {converted_id}")
            except ExternalServiceError as e:
                log.warn(f"Temporary file {converted_id} was not deleted: {e}")


def run_import(
    doc: OpenDocument,
    session: ImportSession,
    confirmed_label: str | None,
    source_url: str | None,
    file_store: FileStore,
    log: RunLog,
) -> str:
    """Copy the billing export into the raw sheet and mark the tracking row.

    :return: The imported period label
    :raises ValidationError: If the operator input is unusable
    """
    label: str = validate_period_label(confirmed_label, expected=session.label)
    file_id: str = extract_file_id(source_url)

    rows: list[list[Any]] = file_to_table(file_store, file_id, log)
    log.log(f"Read {len(rows)} row(s) from the source file")

    name: str = raw_sheet_name(label)
    sheet, existed = get_or_create_cleared_sheet(doc, name)
    log.log(f"{'Cleared' if existed else 'Created'} sheet '{name}'")
    write_rows(sheet, rows, doc)

    mark_import_completed(doc, session.row, label, session.sheet_name)
    log.log(
        f"✓ Tracking row {session.row} of '{session.sheet_name}' marked as imported"
    )
    return label


def open_import_dialog(
    workbook_path: str | Path | None = None,
    store: StateStore | None = None,
    log: RunLog | None = None,
    today: Any = None,
) -> tuple[ImportSession | None, RunOutcome]:
    """First half of stage 1: the values shown in the import dialog."""
    run_log: RunLog = log or RunLog()
    state_store: StateStore = store or StateStore()
    path = Path(workbook_path or config.WORKBOOK_FILE)

    try:
        if not path.exists():
            raise NotFoundError(f"Workbook '{path}' not found")
        doc: OpenDocument = load(str(path))
        session: ImportSession = prepare_import(doc, run_log, state_store, today)
        check_recorded_state(doc, session.label, state_store, run_log)
    except Exception as e:
        run_log.error(str(e))
        return None, run_log.outcome(False, f"Could not prepare the import: {e}")

    return session, run_log.outcome(True, f"Ready to import {session.label}")


def import_billing_month(
    confirmed_label: str | None,
    source_url: str | None,
    workbook_path: str | Path | None = None,
    file_store: FileStore | None = None,
    store: StateStore | None = None,
    log: RunLog | None = None,
) -> RunOutcome:
    """Second half of stage 1, run after the operator confirmed the dialog.

    :param confirmed_label: Billing month confirmed by the operator
    :type confirmed_label: str | None
    :param source_url: Share URL of the billing export
    :type source_url: str | None
    :return: Outcome with message and full run log
    :rtype: RunOutcome
    """
    run_log: RunLog = log or RunLog()
    state_store: StateStore = store or StateStore()
    path = Path(workbook_path or config.WORKBOOK_FILE)

    try:
        session: ImportSession | None = state_store.load_session()
        store_client: FileStore = file_store or FileStore()
        with open_workbook(path, run_log) as doc:
            if session is None:
                run_log.log("No open import session, resolving the billing month again")
                session = prepare_import(doc, run_log, state_store)
            label: str = run_import(
                doc, session, confirmed_label, source_url, store_client, run_log
            )
        state_store.set_state(label, PipelineState.IMPORTED)
        state_store.clear_session()
    except Exception as e:
        run_log.error(str(e))
        return run_log.outcome(False, f"Import failed: {e}")

    return run_log.outcome(True, f"✓ {label} imported into '{raw_sheet_name(label)}'")


# ==============================================================================
# STAGE 2: CLEAN-UP AND CLASSIFICATION
# ==============================================================================


def _get_staged_sheet(
    doc: OpenDocument, raw_sheet: table.Table, label: str, log: RunLog
) -> table.Table:
    name: str = staged_sheet_name(label)
    staged: table.Table | None = find_sheet_by_name(doc, name)
    if staged is not None:
        log.log(f"Sheet '{name}' already exists, resuming")
        return staged

    staged = duplicate_sheet(doc, raw_sheet, name)
    log.log(f"Created sheet '{name}' from the raw import")
    return staged


def _add_entity_column(grid: SheetGrid, layout: StagedLayout, log: RunLog) -> StagedLayout:
    if layout.entity_col is not None:
        log.log(f"'{config.ENTITY_TYPE_HEADER}' column already present")
        return layout

    grid.insert_column(0)
    grid.set(HEADER_ROW, 0, config.ENTITY_TYPE_HEADER)
    if grid.doc is not None:
        grid.cell(HEADER_ROW, 0).setAttrNS(
            TABLENS, "style-name", ensure_header_style_exists(grid.doc)
        )
    log.log(f"Inserted '{config.ENTITY_TYPE_HEADER}' column")
    return layout.with_entity_column()


def classify_rows(
    grid: SheetGrid, layout: StagedLayout, classifier: EntityClassifier, log: RunLog
) -> tuple[int, int]:
    """Write an entity type for every data row and read each one back.

    :return: Number of classified and unmatched rows
    :rtype: tuple[int, int]
    """
    if layout.entity_col is None:
        raise ValueError("Staged sheet has no entity type column")

    classified: int = 0
    unmatched: int = 0

    for row in range(FIRST_DATA_ROW, grid.row_count + 1):
        name: Any = grid.get(row, layout.name_col)
        if name is None or not str(name).strip():
            continue

        entity_type: str | None = classifier.classify(str(name))
        grid.set(row, layout.entity_col, entity_type)

        written: Any = grid.get(row, layout.entity_col)
        if written != entity_type:
            log.warn(
                f"Row {row}: wrote '{entity_type}' but read back '{written}'"
            )

        if entity_type is None:
            unmatched += 1
        else:
            classified += 1

    return classified, unmatched


def run_additional_processing(
    doc: OpenDocument,
    sheet_name: str,
    classifier: EntityClassifier,
    log: RunLog,
) -> tuple[str, PipelineState]:
    """Build or resume the staged sheet for the raw sheet ``sheet_name``.

    :return: Period label and the state the period reached
    :raises PatternMismatchError: If ``sheet_name`` is not a raw sheet name
    :raises NotFoundError: If the raw or reference sheet is missing
    """
    label: str = label_from_raw_sheet_name(sheet_name)
    log.log(f"Billing month from sheet name: {label}")

    raw_sheet: table.Table | None = find_sheet_by_name(doc, sheet_name)
    if raw_sheet is None:
        raise NotFoundError(f"Sheet '{sheet_name}' not found")

    staged: table.Table = _get_staged_sheet(doc, raw_sheet, label, log)
    grid = SheetGrid(staged, doc)
    layout: StagedLayout = StagedLayout.detect(grid)

    trimmed_rows: list[int] = trim_column(grid, layout.name_col, FIRST_DATA_ROW)
    log.log(f"Trimmed whitespace in {len(trimmed_rows)} name(s)")

    mapping: dict[str, Any] = load_substitution_map(doc)
    changes = substitute_column(grid, layout.name_col, FIRST_DATA_ROW, mapping)
    for change in changes:
        log.log(f"Row {change.row}: '{change.old}' -> '{change.new}'")
    log.log(f"Replaced {len(changes)} name(s) from '{config.REFERENCE_SHEET}'")

    layout = _add_entity_column(grid, layout, log)

    classified, unmatched = classify_rows(grid, layout, classifier, log)
    log.log(f"Classified {classified} row(s), {unmatched} without a match")

    match = _find_tracking_row_or_none(doc, label, log)
    if match is None:
        log.warn(f"No tracking row for {label}, status not updated")
        return label, PipelineState.CLASSIFIED

    mark_stage2_completed(doc, match.row, label)
    log.log(f"✓ Tracking row {match.row} marked as stage 2 completed")
    return label, PipelineState.COMPLETED


def process_billing_month(
    sheet_name: str | None = None,
    workbook_path: str | Path | None = None,
    classifier: EntityClassifier | None = None,
    store: StateStore | None = None,
    log: RunLog | None = None,
) -> RunOutcome:
    """Run stage 2 on ``sheet_name`` or on the workbook's active sheet.

    :return: Outcome with message and full run log
    :rtype: RunOutcome
    """
    run_log: RunLog = log or RunLog()
    state_store: StateStore = store or StateStore()
    path = Path(workbook_path or config.WORKBOOK_FILE)

    try:
        with open_workbook(path, run_log) as doc:
            target: str | None = sheet_name or get_active_sheet_name(doc)
            if not target:
                raise ValidationError("No sheet selected, pass the raw sheet name")

            label: str = label_from_raw_sheet_name(target)
            check_recorded_state(doc, label, state_store, run_log)

            entity_classifier: EntityClassifier = classifier or build_classifier(
                doc, run_log
            )
            label, state = run_additional_processing(
                doc, target, entity_classifier, run_log
            )
        state_store.set_state(label, state)
    except PatternMismatchError as e:
        run_log.warn(str(e))
        return run_log.outcome(False, f"Additional processing skipped: {e}")
    except Exception as e:
        run_log.error(str(e))
        return run_log.outcome(False, f"Additional processing failed: {e}")

    return run_log.outcome(True, f"✓ {label} stage 2 completed")
