"""
Entity classification: mapping a billed name to an entity type label

The lookup answers with nothing, a single label, or several candidates
keyed by a discriminator (for example a registration number). Several
candidates are narrowed to one by an explicit tie-break policy and the
choice is written to the run log.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable, Protocol

import requests
from odf import table
from odf.opendocument import OpenDocument

from . import config
from .errors import ExternalServiceError, NotFoundError
from .ods_rows import read_values
from .ods_sheets import find_sheet_by_name
from .run_log import RunLog

LookupResult = str | dict[str, str] | None
TieBreak = Callable[[dict[str, str]], str]


class EntityLookup(Protocol):
    def __call__(self, name: str) -> LookupResult: ...


def lexicographic_first(candidates: dict[str, str]) -> str:
    """Pick the label of the alphabetically first discriminator key."""
    return candidates[min(candidates)]


def first_declared(candidates: dict[str, str]) -> str:
    """Pick the label of the first key in the lookup's own order."""
    return candidates[next(iter(candidates))]


def _normalize_name(name: str) -> str:
    return re.sub(r"\s+", " ", name).strip().casefold()


class SheetLookup:
    """Partial-match lookup over ``(discriminator, name, label)`` rows.

    A row matches when either name contains the other, ignoring case and
    repeated whitespace.
    """

    def __init__(self, rows: Iterable[tuple[Any, Any, Any]]) -> None:
        self.entries: list[tuple[str, str, str]] = []
        for key, name, label in rows:
            if key is None or name is None or label is None:
                continue
            normalized: str = _normalize_name(str(name))
            if not normalized or not str(label).strip():
                continue
            self.entries.append((str(key).strip(), normalized, str(label).strip()))

    @classmethod
    def from_document(cls, doc: OpenDocument) -> "SheetLookup":
        """Load the lookup sheet, skipping its header row.

        :raises NotFoundError: If the lookup sheet is missing
        """
        sheet: table.Table | None = find_sheet_by_name(doc, config.LOOKUP_SHEET)
        if sheet is None:
            raise NotFoundError(f"Lookup sheet '{config.LOOKUP_SHEET}' not found")

        width: int = max(config.COL_LOOKUP_KEY, config.COL_LOOKUP_NAME, config.COL_LOOKUP_LABEL) + 1
        rows: list[tuple[Any, Any, Any]] = []
        for values in read_values(sheet, max_cols=width)[1:]:
            padded: list[Any] = values + [None] * (width - len(values))
            rows.append(
                (
                    padded[config.COL_LOOKUP_KEY],
                    padded[config.COL_LOOKUP_NAME],
                    padded[config.COL_LOOKUP_LABEL],
                )
            )
        return cls(rows)

    def __call__(self, name: str) -> LookupResult:
        needle: str = _normalize_name(name)
        if not needle:
            return None

        candidates: dict[str, str] = {}
        for key, entry_name, label in self.entries:
            if needle in entry_name or entry_name in needle:
                candidates.setdefault(key, label)

        if not candidates:
            return None
        if len(candidates) == 1:
            return next(iter(candidates.values()))
        return candidates


class HttpLookup:
    """Partial-match lookup served over HTTP.

    ``GET <url>?name=<name>`` answers with JSON ``null``, a label string or
    an object of discriminator to label.
    """

    def __init__(self, url: str, session: requests.Session | None = None) -> None:
        self.url = url
        self.session = session or requests.Session()

    def __call__(self, name: str) -> LookupResult:
        try:
            response = self.session.get(
                self.url, params={"name": name}, timeout=config.LOOKUP_SERVICE_TIMEOUT
            )
            response.raise_for_status()
            payload: Any = response.json()
        except requests.RequestException as e:
            raise ExternalServiceError(f"Lookup for '{name}' failed: {e}") from e
        except ValueError as e:
            raise ExternalServiceError(
                f"Lookup for '{name}' returned invalid JSON: {e}"
            ) from e

        if payload is None or payload == "" or payload == {}:
            return None
        if isinstance(payload, dict):
            return {str(k): str(v) for k, v in payload.items()}
        return str(payload)


class EntityClassifier:
    """Resolve a name to exactly one entity type label, or None."""

    def __init__(
        self,
        lookup: EntityLookup,
        tie_break: TieBreak = lexicographic_first,
        log: RunLog | None = None,
    ) -> None:
        self.lookup = lookup
        self.tie_break = tie_break
        self.log = log

    def _log(self, message: str) -> None:
        if self.log is not None:
            self.log.log(message)

    def classify(self, name: str) -> str | None:
        """Classify ``name``.

        :param name: Entity name from the staged sheet
        :type name: str
        :return: Entity type label, or None when nothing matched
        :rtype: str | None
        """
        if not name or not str(name).strip():
            return None

        result: LookupResult = self.lookup(str(name).strip())

        if not result:
            self._log(f"No entity type found for '{name}'")
            return None

        if isinstance(result, dict):
            chosen: str = self.tie_break(result)
            keys: str = ", ".join(result)
            self._log(
                f"Multiple entity types for '{name}' (keys: {keys}); using '{chosen}'"
            )
            return chosen

        return result


def build_classifier(doc: OpenDocument, log: RunLog | None = None) -> EntityClassifier:
    """Create a classifier backed by the lookup service or the lookup sheet."""
    lookup: EntityLookup
    if config.LOOKUP_SERVICE_URL:
        lookup = HttpLookup(config.LOOKUP_SERVICE_URL)
    else:
        lookup = SheetLookup.from_document(doc)
    return EntityClassifier(lookup, log=log)
