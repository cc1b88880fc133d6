from __future__ import annotations

import io
from unittest import mock

import pytest
import requests

from billing_ingest import config
from billing_ingest.errors import ExternalServiceError
from billing_ingest.file_store import FileStore, read_first_sheet


def _response(status=200, json_data=None, content=b""):
    response = mock.Mock()
    response.status_code = status
    response.content = content
    response.text = "error body"
    response.json.return_value = json_data
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(
            f"{status} Client Error", response=response
        )
    return response


def _store(*responses):
    session = mock.Mock()
    session.headers = {}
    session.request.side_effect = list(responses)
    return FileStore("https://files.example/v3", token="secret", session=session), session


def _ods_bytes(make_doc, rows):
    buffer = io.BytesIO()
    make_doc({"Export": rows}).write(buffer)
    return buffer.getvalue()


def test_token_is_sent_as_bearer_header():
    store, session = _store()
    assert session.headers["Authorization"] == "Bearer secret"


def test_convert_posts_copy_request_and_returns_new_id():
    store, session = _store(_response(json_data={"id": "converted-1"}))

    assert store.convert("source-id", name="billing.xls (converted)") == "converted-1"

    method, url = session.request.call_args.args
    assert method == "POST"
    assert url == "https://files.example/v3/files/source-id/copy"
    assert session.request.call_args.kwargs["json"] == {
        "mimeType": config.HOSTED_SPREADSHEET_MIME,
        "name": "billing.xls (converted)",
    }


def test_convert_without_id_in_response_fails():
    store, _ = _store(_response(json_data={}))
    with pytest.raises(ExternalServiceError):
        store.convert("source-id")


def test_fetch_export_and_delete_urls():
    store, session = _store(
        _response(content=b"xls"),
        _response(content=b"ods"),
        _response(status=204),
    )

    assert store.fetch("abc") == b"xls"
    assert store.export("abc") == b"ods"
    store.delete("abc")

    calls = session.request.call_args_list
    assert calls[0].args == ("GET", "https://files.example/v3/files/abc")
    assert calls[0].kwargs["params"] == {"alt": "media"}
    assert calls[1].kwargs["params"] == {"mimeType": config.ODS_EXPORT_MIME}
    assert calls[2].args == ("DELETE", "https://files.example/v3/files/abc")


def test_metadata_returns_json():
    store, _ = _store(_response(json_data={"id": "abc", "mimeType": "application/vnd.ms-excel"}))
    assert store.metadata("abc")["mimeType"] == "application/vnd.ms-excel"


def test_http_errors_are_wrapped_with_details():
    store, _ = _store(_response(status=404, json_data={"error": "notFound"}))

    with pytest.raises(ExternalServiceError, match="notFound"):
        store.fetch("missing")


def test_connection_errors_are_wrapped():
    session = mock.Mock()
    session.headers = {}
    session.request.side_effect = requests.ConnectionError("offline")
    store = FileStore("https://files.example/v3", session=session)

    with pytest.raises(ExternalServiceError, match="offline"):
        store.delete("abc")


def test_export_rows_reads_first_sheet(make_doc):
    content = _ods_bytes(make_doc, [["Name", "Amount"], ["Riverside FC", 12.5]])
    store, _ = _store(_response(content=content))

    assert store.export_rows("converted-1") == [["Name", "Amount"], ["Riverside FC", 12.5]]


def test_read_first_sheet_rejects_garbage():
    with pytest.raises(ExternalServiceError):
        read_first_sheet(b"not a spreadsheet")
