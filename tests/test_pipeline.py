from __future__ import annotations

from datetime import date, datetime

import pytest
from odf.opendocument import load

from billing_ingest import pipeline
from billing_ingest.classifier import EntityClassifier, SheetLookup
from billing_ingest.errors import ExternalServiceError, PatternMismatchError
from billing_ingest.ods_rows import SheetGrid, read_range, read_values
from billing_ingest.ods_sheets import find_sheet_by_name, list_sheets, sheet_name
from billing_ingest.pipeline import (
    check_recorded_state,
    file_to_table,
    import_billing_month,
    infer_state_from_workbook,
    open_import_dialog,
    process_billing_month,
    run_additional_processing,
    run_import,
)
from billing_ingest.run_log import RunLog
from billing_ingest.session import ImportSession, PipelineState, StateStore

SOURCE_URL = "https://drive.google.com/file/d/1AbCdEfGhIjKlMnOpQrStUvWxYz_0123/view"
IMPORTED_ROWS = [["Name", "Amount"], ["Riverside Club", 10], ["Harbour", 7]]


class FakeFileStore:
    """In-memory stand-in for the file store API."""

    def __init__(self, rows=None, mime_type="application/vnd.ms-excel", fail_export=False):
        self.rows = rows if rows is not None else IMPORTED_ROWS
        self.mime_type = mime_type
        self.fail_export = fail_export
        self.converted = []
        self.deleted = []

    def metadata(self, file_id):
        return {"id": file_id, "name": "billing.xls", "mimeType": self.mime_type}

    def fetch(self, file_id):
        raise AssertionError("fetch is only used for ODS sources")

    def convert(self, file_id, name=None):
        self.converted.append(file_id)
        return "converted-1"

    def export_rows(self, file_id):
        if self.fail_export:
            raise ExternalServiceError("export failed")
        return self.rows

    def delete(self, file_id):
        self.deleted.append(file_id)


@pytest.fixture
def log():
    return RunLog(echo=False)


@pytest.fixture
def store(tmp_path):
    return StateStore(tmp_path / "state.json")


def _classifier(doc, log=None):
    return EntityClassifier(SheetLookup.from_document(doc), log=log)


def _sheet_names(doc):
    return [sheet_name(s) for s in list_sheets(doc)]


def _tracking(doc, row):
    return read_range(find_sheet_by_name(doc, "Billing Tracker"), row, row, 3, 5)[0]


EXPECTED_STAGED = [
    ["Entity Type", "Name", "Amount"],
    ["Club", "Riverside FC", 10],
    [None, "A FC", 20],
    [None, "Unknown Town", 5],
    ["Club", "Harbour", 7],
]


# ==============================================================================
# STAGE 2
# ==============================================================================


def test_stage2_builds_staged_sheet(billing_doc, log):
    label, state = run_additional_processing(
        billing_doc, "Feb-25 (RAW)", _classifier(billing_doc, log), log
    )

    assert (label, state) == ("Feb-25", PipelineState.COMPLETED)
    staged = find_sheet_by_name(billing_doc, "Feb-25 (STG1)")
    assert read_values(staged) == EXPECTED_STAGED
    assert _tracking(billing_doc, 3)[2] == "Feb-25 (Stage 2 Completed)"
    assert _sheet_names(billing_doc).index("Feb-25 (STG1)") == _sheet_names(billing_doc).index("Feb-25 (RAW)") + 1


def test_stage2_leaves_raw_sheet_untouched(billing_doc, billing_sheets, log):
    run_additional_processing(billing_doc, "Feb-25 (RAW)", _classifier(billing_doc), log)
    raw = find_sheet_by_name(billing_doc, "Feb-25 (RAW)")
    assert read_values(raw) == billing_sheets["Feb-25 (RAW)"]


def test_stage2_logs_ambiguous_and_unmatched_names(billing_doc, log):
    run_additional_processing(billing_doc, "Feb-25 (RAW)", _classifier(billing_doc, log), log)

    assert "Multiple entity types for 'Harbour' (keys: H2, H1); using 'Club'" in log.text
    assert "No entity type found for 'A FC'" in log.text
    assert "Row 2: ' Riverside Club ' -> 'Riverside FC'" not in log.text
    assert "Row 2: 'Riverside Club' -> 'Riverside FC'" in log.text


def test_stage2_rerun_reuses_staged_sheet(billing_doc, log):
    classifier = _classifier(billing_doc)
    run_additional_processing(billing_doc, "Feb-25 (RAW)", classifier, log)

    second_log = RunLog(echo=False)
    run_additional_processing(billing_doc, "Feb-25 (RAW)", classifier, second_log)

    assert _sheet_names(billing_doc).count("Feb-25 (STG1)") == 1
    assert read_values(find_sheet_by_name(billing_doc, "Feb-25 (STG1)")) == EXPECTED_STAGED
    assert "already exists, resuming" in second_log.text
    assert "'Entity Type' column already present" in second_log.text
    assert "Replaced 0 name(s)" in second_log.text
    assert "Trimmed whitespace in 0 name(s)" in second_log.text


def test_stage2_without_tracking_row_still_completes(make_doc, billing_sheets, log):
    billing_sheets["Mar-25 (RAW)"] = billing_sheets.pop("Feb-25 (RAW)")
    billing_sheets["Billing Tracker"] = billing_sheets["Billing Tracker"][:2]
    doc = make_doc(billing_sheets)

    label, state = run_additional_processing(doc, "Mar-25 (RAW)", _classifier(doc), log)

    assert (label, state) == ("Mar-25", PipelineState.CLASSIFIED)
    assert "No tracking row for Mar-25" in log.text
    assert find_sheet_by_name(doc, "Mar-25 (STG1)") is not None


def test_stage2_rejects_non_raw_sheet(billing_doc, log):
    before = _sheet_names(billing_doc)
    with pytest.raises(PatternMismatchError):
        run_additional_processing(billing_doc, "Summary", _classifier(billing_doc), log)
    assert _sheet_names(billing_doc) == before


def test_process_billing_month_saves_workbook(workbook_file, store, log):
    outcome = process_billing_month("Feb-25 (RAW)", workbook_file, store=store, log=log)

    assert outcome["success"] is True
    assert outcome["message"] == "✓ Feb-25 stage 2 completed"
    assert outcome["logs"] == log.text

    doc = load(str(workbook_file))
    assert read_values(find_sheet_by_name(doc, "Feb-25 (STG1)"))[0] == ["Entity Type", "Name", "Amount"]
    assert store.get_state("Feb-25") is PipelineState.COMPLETED
    assert not list(workbook_file.parent.glob("*_backup_*"))


class MisreadingGrid(SheetGrid):
    """Grid that reads back a different entity type for row 2."""

    def __init__(self, sheet, doc=None):
        super().__init__(sheet, doc)
        self.misread = set()

    def set(self, row, col, value):
        super().set(row, col, value)
        if (row, col) == (2, 0) and value == "Club":
            self.misread.add((row, col))

    def get(self, row, col):
        if (row, col) in self.misread:
            return "Clubs"
        return super().get(row, col)


def test_stage2_read_back_mismatch_is_only_a_warning(workbook_file, store, log, monkeypatch):
    monkeypatch.setattr(pipeline, "SheetGrid", MisreadingGrid)

    outcome = process_billing_month("Feb-25 (RAW)", workbook_file, store=store, log=log)

    assert outcome["success"] is True, outcome["logs"]
    assert "⚠ Row 2: wrote 'Club' but read back 'Clubs'" in log.text
    assert "Classified 2 row(s), 2 without a match" in log.text
    doc = load(str(workbook_file))
    assert read_values(find_sheet_by_name(doc, "Feb-25 (STG1)")) == EXPECTED_STAGED
    assert store.get_state("Feb-25") is PipelineState.COMPLETED


def test_process_billing_month_pattern_mismatch_changes_nothing(workbook_file, store, log):
    original = workbook_file.read_bytes()

    outcome = process_billing_month("Summary", workbook_file, store=store, log=log)

    assert outcome["success"] is False
    assert "Summary" in outcome["message"]
    assert workbook_file.read_bytes() == original
    assert store.get_state("Feb-25") is PipelineState.NOT_STARTED


def test_process_billing_month_without_selected_sheet(workbook_file, store, log):
    outcome = process_billing_month(None, workbook_file, store=store, log=log)
    assert outcome["success"] is False
    assert "No sheet selected" in outcome["message"]


def test_process_billing_month_missing_workbook(tmp_path, store, log):
    outcome = process_billing_month("Feb-25 (RAW)", tmp_path / "missing.ods", store=store, log=log)
    assert outcome["success"] is False
    assert "not found" in outcome["message"]


# ==============================================================================
# STAGE 1
# ==============================================================================


def test_open_import_dialog_resolves_last_month(workbook_file, store, log):
    session, outcome = open_import_dialog(workbook_file, store, log, today=date(2025, 3, 14))

    assert outcome["success"] is True
    assert (session.label, session.row, session.confirmed) == ("Feb-25", 3, False)
    assert store.load_session() == session


def test_open_import_dialog_without_tracking_row(workbook_file, store, log):
    session, outcome = open_import_dialog(workbook_file, store, log, today=date(2025, 6, 2))

    assert session is None
    assert outcome["success"] is False
    assert "No row for May-25" in outcome["message"]
    assert store.load_session() is None


def test_import_billing_month_creates_raw_sheet(workbook_file, store, log):
    open_import_dialog(workbook_file, store, log, today=date(2025, 4, 1))
    files = FakeFileStore()

    outcome = import_billing_month("Mar-25", SOURCE_URL, workbook_file, files, store, log)

    assert outcome["success"] is True, outcome["logs"]
    doc = load(str(workbook_file))
    assert read_values(find_sheet_by_name(doc, "Mar-25 (RAW)")) == IMPORTED_ROWS
    assert _tracking(doc, 4)[0] is True
    assert _tracking(doc, 4)[2] == "Mar-25 (Import Completed)"
    assert files.converted == ["1AbCdEfGhIjKlMnOpQrStUvWxYz_0123"]
    assert files.deleted == ["converted-1"]
    assert store.get_state("Mar-25") is PipelineState.IMPORTED
    assert store.load_session() is None


def test_import_billing_month_clears_existing_raw_sheet(workbook_file, store, log):
    open_import_dialog(workbook_file, store, log, today=date(2025, 3, 1))

    outcome = import_billing_month("Feb-25", SOURCE_URL, workbook_file, FakeFileStore(), store, log)

    assert outcome["success"] is True
    doc = load(str(workbook_file))
    assert _sheet_names(doc).count("Feb-25 (RAW)") == 1
    assert read_values(find_sheet_by_name(doc, "Feb-25 (RAW)")) == IMPORTED_ROWS
    assert "Cleared sheet 'Feb-25 (RAW)'" in log.text


def test_import_failure_cleans_up_and_leaves_workbook(workbook_file, store, log):
    open_import_dialog(workbook_file, store, log, today=date(2025, 4, 1))
    original = workbook_file.read_bytes()
    files = FakeFileStore(fail_export=True)

    outcome = import_billing_month("Mar-25", SOURCE_URL, workbook_file, files, store, log)

    assert outcome["success"] is False
    assert "export failed" in outcome["message"]
    assert "export failed" in outcome["logs"]
    assert files.deleted == ["converted-1"]
    assert workbook_file.read_bytes() == original
    assert store.get_state("Mar-25") is PipelineState.NOT_STARTED


@pytest.mark.parametrize(
    "month, url, message",
    [
        (None, SOURCE_URL, "No billing month"),
        ("Feb-25", SOURCE_URL, "does not match"),
        ("Mar-25", "https://example.com/file", "Could not find a file id"),
    ],
)
def test_import_rejects_bad_operator_input(workbook_file, store, log, month, url, message):
    open_import_dialog(workbook_file, store, log, today=date(2025, 4, 1))
    files = FakeFileStore()

    outcome = import_billing_month(month, url, workbook_file, files, store, log)

    assert outcome["success"] is False
    assert message in outcome["message"]
    assert files.converted == []


def test_file_to_table_reads_ods_without_conversion(log):
    class OdsStore(FakeFileStore):
        def fetch(self, file_id):
            return self.content

    files = OdsStore(mime_type="application/vnd.oasis.opendocument.spreadsheet")
    files.content = b"not really ods"

    with pytest.raises(ExternalServiceError):
        file_to_table(files, "abc", log)
    assert files.converted == []
    assert files.deleted == []


# ==============================================================================
# STATE RECONCILIATION
# ==============================================================================


def test_infer_state_follows_workbook(billing_doc):
    assert infer_state_from_workbook(billing_doc, "Mar-25") is PipelineState.NOT_STARTED
    assert infer_state_from_workbook(billing_doc, "Feb-25") is PipelineState.IMPORTED

    run_additional_processing(billing_doc, "Feb-25 (RAW)", _classifier(billing_doc), RunLog(echo=False))
    assert infer_state_from_workbook(billing_doc, "Feb-25") is PipelineState.COMPLETED


def test_check_recorded_state_warns_on_disagreement(billing_doc, store, log):
    assert check_recorded_state(billing_doc, "Feb-25", store, log) is PipelineState.NOT_STARTED
    assert "recorded state is NotStarted but the workbook looks Imported" in log.text

    store.set_state("Feb-25", PipelineState.IMPORTED)
    quiet = RunLog(echo=False)
    check_recorded_state(billing_doc, "Feb-25", store, quiet)
    assert quiet.text == ""


def test_check_recorded_state_reports_workbook_behind_record(billing_doc, store, log):
    store.set_state("Feb-25", PipelineState.COMPLETED)

    assert check_recorded_state(billing_doc, "Feb-25", store, log) is PipelineState.COMPLETED
    assert "recorded state is Completed but the workbook looks Imported (behind the record)" in log.text


def test_check_recorded_state_reports_workbook_ahead_of_record(billing_doc, store, log):
    check_recorded_state(billing_doc, "Feb-25", store, log)
    assert "(ahead of the record)" in log.text


def test_run_import_marks_the_session_tracking_sheet(make_doc, billing_sheets, log):
    billing_sheets["Tracker Copy"] = billing_sheets["Billing Tracker"]
    doc = make_doc(billing_sheets)
    session = ImportSession(
        label="Mar-25",
        row=4,
        confirmed=False,
        sheet_name="Tracker Copy",
        created_at=datetime.now(),
    )

    assert run_import(doc, session, "Mar-25", SOURCE_URL, FakeFileStore(), log) == "Mar-25"

    copy = find_sheet_by_name(doc, "Tracker Copy")
    assert read_range(copy, 4, 4, 3, 5)[0][2] == "Mar-25 (Import Completed)"
    assert _tracking(doc, 4) == [False, " Mar-25 ", None]
    assert "of 'Tracker Copy' marked as imported" in log.text
