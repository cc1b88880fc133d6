"""
File store client for the hosted billing exports

The billing export is an XLS file in a Drive-style file store. It is
converted to a hosted spreadsheet, exported back as ODS and read into
rows. The converted copy is temporary and must be deleted afterwards.
"""

from __future__ import annotations

import io
from typing import Any

import requests
from odf import table
from odf.opendocument import OpenDocument, load

from . import config
from .errors import ExternalServiceError
from .ods_rows import read_values


def _describe_http_error(e: requests.HTTPError) -> str:
    """Build an error message including the response details, if any."""
    message: str = str(e)
    if hasattr(e, "response") and e.response is not None:
        try:
            error_details = e.response.json()
            message += f" (details: {error_details})"
        except (ValueError, KeyError):
            message += f" (response: {e.response.text})"
    return message


class FileStore:
    """Thin client for the file store REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url: str = (base_url or config.FILE_STORE_URL).rstrip("/")
        self.session: requests.Session = session or requests.Session()
        auth_token: str | None = token if token is not None else config.FILE_STORE_TOKEN
        if auth_token:
            self.session.headers["Authorization"] = f"Bearer {auth_token}"

    def _request(self, method: str, path: str, action: str, **kwargs: Any) -> requests.Response:
        try:
            response: requests.Response = self.session.request(
                method,
                f"{self.base_url}{path}",
                timeout=config.FILE_STORE_TIMEOUT,
                **kwargs,
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            raise ExternalServiceError(f"{action} failed: {_describe_http_error(e)}") from e
        except requests.RequestException as e:
            raise ExternalServiceError(f"{action} failed: {e}") from e
        return response

    def metadata(self, file_id: str) -> dict[str, Any]:
        """Return the id, name and mime type of a stored file."""
        response = self._request(
            "GET",
            f"/files/{file_id}",
            f"Reading metadata of file {file_id}",
            params={"fields": "id,name,mimeType"},
        )
        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(
                f"Reading metadata of file {file_id} returned invalid JSON"
            ) from e

    def fetch(self, file_id: str) -> bytes:
        """Download the content of a stored file.

        :param file_id: Id of the stored file
        :type file_id: str
        :return: Raw file content
        :rtype: bytes
        :raises ExternalServiceError: If the request fails
        """
        response = self._request(
            "GET", f"/files/{file_id}", f"Fetching file {file_id}", params={"alt": "media"}
        )
        return response.content

    def convert(self, file_id: str, name: str | None = None) -> str:
        """Copy a file as a hosted spreadsheet and return the id of the copy.

        :raises ExternalServiceError: If the request fails or returns no id
        """
        body: dict[str, str] = {"mimeType": config.HOSTED_SPREADSHEET_MIME}
        if name:
            body["name"] = name

        response = self._request(
            "POST", f"/files/{file_id}/copy", f"Converting file {file_id}", json=body
        )
        try:
            new_id: str = response.json()["id"]
        except (ValueError, KeyError) as e:
            raise ExternalServiceError(
                f"Converting file {file_id} returned no file id"
            ) from e
        return new_id

    def export(self, file_id: str, mime_type: str = config.ODS_EXPORT_MIME) -> bytes:
        response = self._request(
            "GET",
            f"/files/{file_id}/export",
            f"Exporting file {file_id}",
            params={"mimeType": mime_type},
        )
        return response.content

    def delete(self, file_id: str) -> None:
        self._request("DELETE", f"/files/{file_id}", f"Deleting file {file_id}")

    def export_rows(self, file_id: str) -> list[list[Any]]:
        """Export a hosted spreadsheet as ODS and read its first sheet."""
        content: bytes = self.export(file_id)
        return read_first_sheet(content)


def read_first_sheet(content: bytes) -> list[list[Any]]:
    """Read the used area of the first sheet of an ODS file held in memory.

    :raises ExternalServiceError: If the content is not a readable spreadsheet
    """
    try:
        doc: OpenDocument = load(io.BytesIO(content))
    except Exception as e:
        raise ExternalServiceError(f"Exported file is not a readable spreadsheet: {e}") from e

    sheets: list[Any] = doc.spreadsheet.getElementsByType(table.Table)
    if not sheets:
        raise ExternalServiceError("Exported spreadsheet has no sheets")
    return read_values(sheets[0])
