"""Ledger explorer parsing: explorer URL -> schema / credential definition metadata.

Supported explorers:
  CandyScan  https://candyscan.idlab.org/tx/CANDY_DEV/domain/123
  IndyScan   https://indyscan.io/txs/SOVRIN_MAINNET/domain/123
  BCovrin    https://test.bcovrin.vonx.io/browse/domain/tx/123

Explorer pages come back either as HTML or as the raw transaction JSON.
Both are handled: identifiers are found by pattern in the text
(``<did>:2:<name>:<version>`` for schemas, ``<did>:3:CL:<seqNo>:<tag>``
for credential definitions), and the transaction ``data`` object is read
when the body is JSON.

Parsing is a pure network read.  Failures are never retried here; the
user re-submits the URL.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from app.core.metrics import LEDGER_FETCHES
from app.models.catalogue import ParsedCredDef, ParsedSchema
from app.services.errors import MismatchError, ParseError

logger = logging.getLogger(__name__)

_REQUEST_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; CredentialCatalogue/1.0)",
    "Accept": "text/html,application/xhtml+xml,application/json",
}

_CANDYSCAN_RE = re.compile(r"candyscan\.idlab\.org/tx/([^/]+)/domain/(\d+)")
_INDYSCAN_RE = re.compile(r"indyscan\.io/txs/([^/]+)/domain/(\d+)")
_BCOVRIN_RE = re.compile(r"bcovrin\.vonx\.io.*/tx/(\d+)")

_SCHEMA_ID_RE = re.compile(r"([A-Za-z0-9]{21,}):2:([^:\"'<>\n]+):(\d+(?:\.\d+)*)")
_CRED_DEF_ID_RE = re.compile(r"([A-Za-z0-9]{21,}):3:CL:(\d+):([A-Za-z0-9_.-]+)")
_ATTR_NAMES_RE = re.compile(r"attr_names[\"']?\s*[:=]?\s*\[([^\]]+)\]", re.IGNORECASE)
_QUOTED_RE = re.compile(r"[\"']([^\"']+)[\"']")


@dataclass(frozen=True, slots=True)
class LedgerReference:
    """Where an explorer URL points: which ledger, which transaction."""

    url: str
    explorer: str
    ledger: str
    seq_no: int | None


def resolve_reference(url: str) -> LedgerReference:
    """Identify the explorer and ledger of ``url``.

    Raises ParseError(kind="unsupported-url") for anything that is not an
    http(s) link to a supported explorer transaction.
    """
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ParseError("unsupported-url", f"not an explorer URL: {url!r}")

    if m := _CANDYSCAN_RE.search(url):
        network = m.group(1).lower().removeprefix("candy_")
        return LedgerReference(url, "candyscan", f"candy:{network}", int(m.group(2)))

    if m := _INDYSCAN_RE.search(url):
        return LedgerReference(
            url, "indyscan", f"sovrin:{m.group(1).lower()}", int(m.group(2))
        )

    if m := _BCOVRIN_RE.search(url):
        host = parsed.netloc.lower()
        network = "dev" if host.startswith("dev.") else "test"
        return LedgerReference(url, "bcovrin", f"bcovrin:{network}", int(m.group(1)))

    raise ParseError(
        "unsupported-url",
        f"URL does not identify a CandyScan, IndyScan or BCovrin transaction: {url!r}",
    )


# ---------------------------------------------------------------------------
# Page helpers
# ---------------------------------------------------------------------------


def _soup(raw: str) -> BeautifulSoup:
    soup = BeautifulSoup(raw, "html.parser")
    for node in soup(["script", "style"]):
        node.decompose()
    return soup


def _page_text(soup: BeautifulSoup) -> str:
    """Visible text of the page body."""
    root = soup.body or soup
    return root.get_text(" ")


def _table_rows(soup: BeautifulSoup) -> list[tuple[str, str]]:
    """``(label, value)`` pairs from every two-or-more cell table row."""
    rows = []
    for row in soup.find_all("tr"):
        cells = row.find_all(["td", "th"], recursive=False)
        if len(cells) >= 2:
            label = cells[0].get_text(" ", strip=True).lower()
            value = cells[1].get_text(" ", strip=True)
            rows.append((label, value))
    return rows


def _load_json(raw: str) -> Any:
    if not raw.lstrip().startswith(("{", "[")):
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


def _find_object(node: Any, *keys: str) -> dict[str, Any] | None:
    """Depth-first search for the first dict that has every key in ``keys``."""
    if isinstance(node, dict):
        if all(k in node for k in keys):
            return node
        children = list(node.values())
    elif isinstance(node, list):
        children = node
    else:
        return None
    for child in children:
        found = _find_object(child, *keys)
        if found is not None:
            return found
    return None


def _to_int(value: Any) -> int | None:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


class LedgerReferenceParser:
    """Fetch an explorer page and extract ledger metadata from it."""

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def _fetch(self, ref: LedgerReference, kind: str) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(ref.url, headers=_REQUEST_HEADERS)
        except httpx.TimeoutException:
            LEDGER_FETCHES.labels(kind=kind, result="fetch-failed").inc()
            raise ParseError(
                "fetch-failed", f"Timed out after {self._timeout:g}s fetching {ref.url}"
            ) from None
        except httpx.HTTPError as e:
            LEDGER_FETCHES.labels(kind=kind, result="fetch-failed").inc()
            raise ParseError("fetch-failed", f"Failed to fetch URL: {e}") from None

        if response.is_error:
            LEDGER_FETCHES.labels(kind=kind, result="fetch-failed").inc()
            raise ParseError(
                "fetch-failed",
                f"Failed to fetch URL: HTTP {response.status_code}",
            )
        return response.text

    # -- schema ------------------------------------------------------------

    async def parse_schema(self, url: str) -> ParsedSchema:
        ref = resolve_reference(url)
        logger.info("Parsing schema url=%s ledger=%s", ref.url, ref.ledger)
        raw = await self._fetch(ref, "schema")
        try:
            schema = self._extract_schema(raw, ref)
        except ParseError as e:
            LEDGER_FETCHES.labels(kind="schema", result=e.kind).inc()
            logger.warning("Schema page not parseable url=%s: %s", ref.url, e)
            raise
        LEDGER_FETCHES.labels(kind="schema", result="ok").inc()
        return schema

    def _extract_schema(self, raw: str, ref: LedgerReference) -> ParsedSchema:
        name: str | None = None
        version: str | None = None
        attributes: list[str] = []
        seq_no: int | None = None

        doc = _load_json(raw)
        if doc is not None:
            data = _find_object(doc, "attr_names")
            if data is not None:
                name = data.get("name")
                version = data.get("version")
                attributes = [str(a) for a in data.get("attr_names") or []]
            txn_meta = _find_object(doc, "seqNo")
            if txn_meta is not None:
                seq_no = _to_int(txn_meta["seqNo"])
            text = raw
            rows: list[tuple[str, str]] = []
        else:
            soup = _soup(raw)
            text = _page_text(soup)
            rows = _table_rows(soup)

        schema_id = issuer_did = None
        matches = list(_SCHEMA_ID_RE.finditer(text))
        # Prefer the id that agrees with the transaction data, if we have it.
        chosen = next(
            (
                m
                for m in matches
                if (name is None or m.group(2).strip() == name)
                and (version is None or m.group(3) == version)
            ),
            matches[0] if matches else None,
        )
        if chosen is not None:
            schema_id = chosen.group(0)
            issuer_did = chosen.group(1)
            name = name or chosen.group(2).strip()
            version = version or chosen.group(3)

        if not attributes:
            if m := _ATTR_NAMES_RE.search(text):
                attributes = _QUOTED_RE.findall(m.group(1))

        for label, value in rows:
            if "name" in label and "attr" not in label and not name:
                name = value
            elif "version" in label and not version:
                version = value
            elif "seq" in label and seq_no is None:
                seq_no = _to_int(value)

        if not name or not version:
            raise ParseError(
                "unparseable", "Could not parse schema name and version from page"
            )
        if not attributes:
            raise ParseError("unparseable", "Could not parse schema attributes from page")
        if schema_id is None:
            raise ParseError("unparseable", "Could not find a schema id on the page")

        return ParsedSchema(
            name=name,
            version=version,
            schema_id=schema_id,
            ledger=ref.ledger,
            attributes=tuple(attributes),
            source_url=ref.url,
            issuer_did=issuer_did,
            seq_no=seq_no if seq_no is not None else ref.seq_no,
        )

    # -- credential definition ----------------------------------------------

    async def parse_cred_def(
        self,
        url: str,
        expected_schema_id: str,
        *,
        expected_schema_seq_no: int,
    ) -> ParsedCredDef:
        """Parse a credential definition and check it belongs to the expected schema.

        ``expected_schema_id`` and ``expected_schema_seq_no`` come from a prior
        parse_schema() of the same ledger.
        Raises MismatchError when the page references another schema.
        """
        ref = resolve_reference(url)
        logger.info(
            "Parsing credential definition url=%s ledger=%s expected_schema=%s",
            ref.url,
            ref.ledger,
            expected_schema_id,
        )
        raw = await self._fetch(ref, "creddef")
        try:
            cred_def = self._extract_cred_def(
                raw, ref, expected_schema_id, expected_schema_seq_no
            )
        except ParseError as e:
            LEDGER_FETCHES.labels(kind="creddef", result=e.kind).inc()
            logger.warning("Cred def page not parseable url=%s: %s", ref.url, e)
            raise
        except MismatchError as e:
            LEDGER_FETCHES.labels(kind="creddef", result="mismatch").inc()
            logger.warning("Cred def schema mismatch url=%s: %s", ref.url, e)
            raise
        LEDGER_FETCHES.labels(kind="creddef", result="ok").inc()
        return cred_def

    def _extract_cred_def(
        self,
        raw: str,
        ref: LedgerReference,
        expected_schema_id: str,
        expected_schema_seq_no: int,
    ) -> ParsedCredDef:
        cred_def_id = issuer_did = referenced_schema_id = None
        tag: str | None = None
        signature_type: str | None = None
        schema_seq_no: int | None = None
        seq_no: int | None = None

        doc = _load_json(raw)
        if doc is not None:
            data = _find_object(doc, "ref")
            if data is not None:
                schema_seq_no = _to_int(data.get("ref"))
                tag = data.get("tag")
                signature_type = data.get("signature_type")
            txn_meta = _find_object(doc, "seqNo")
            if txn_meta is not None:
                seq_no = _to_int(txn_meta["seqNo"])
            text = raw
            rows: list[tuple[str, str]] = []
        else:
            soup = _soup(raw)
            text = _page_text(soup)
            rows = _table_rows(soup)

        if m := _CRED_DEF_ID_RE.search(text):
            cred_def_id = m.group(0)
            issuer_did = m.group(1)
            schema_seq_no = schema_seq_no if schema_seq_no is not None else int(m.group(2))
            tag = tag or m.group(3)

        if m := _SCHEMA_ID_RE.search(text):
            referenced_schema_id = m.group(0)

        for label, value in rows:
            if label.startswith("tag") and not tag:
                tag = value
            elif "signature" in label and "type" in label and not signature_type:
                signature_type = value
            elif "seq" in label and seq_no is None:
                seq_no = _to_int(value)

        if cred_def_id is None:
            raise ParseError(
                "unparseable", "Could not parse credential definition ID from page"
            )

        # A ledger cred def names its schema by sequence number only
        # (``ref`` and the ``:3:CL:<seqNo>:`` segment); explorers that also
        # print the schema id are checked against that instead.
        if referenced_schema_id is not None:
            if referenced_schema_id != expected_schema_id:
                raise MismatchError(expected_schema_id, referenced_schema_id)
        elif schema_seq_no != expected_schema_seq_no:
            raise MismatchError(expected_schema_id, f"seqNo {schema_seq_no}")

        return ParsedCredDef(
            cred_def_id=cred_def_id,
            schema_id=expected_schema_id,
            ledger=ref.ledger,
            source_url=ref.url,
            tag=tag or "default",
            signature_type=signature_type or "CL",
            issuer_did=issuer_did,
            seq_no=seq_no if seq_no is not None else ref.seq_no,
            schema_seq_no=schema_seq_no,
        )
