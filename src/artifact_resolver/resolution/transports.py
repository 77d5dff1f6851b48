"""
artifact-resolver — document transports for published catalogs.

Purpose
- Turn one ``DataSource`` into the decoded entries of its published document.

Key interfaces
- ``Transport``: ``fetch(source, constraint) -> list[Mapping]``.
- ``DirectoryTransport`` reads ``<url>/images.json`` or ``<url>/tools.json`` from disk.
- ``HttpTransport`` downloads the same documents with ``httpx``.
- ``RoutingTransport`` picks one of the above by URL scheme.

Documents are JSON objects with an ``items`` array (a bare array is also accepted).
Every failure to reach or decode a document surfaces as ``SourceUnavailableError``
so callers can skip the source.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urlsplit

import httpx

from artifact_resolver.constants import IMAGE_DOCUMENT_NAME, TOOLS_DOCUMENT_NAME
from artifact_resolver.domain.errors import SourceUnavailableError
from artifact_resolver.domain.models import ContentType

if TYPE_CHECKING:
    from artifact_resolver.domain.models import DataSource, LookupConstraint

DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0


class Transport(Protocol):
    """Retrieve and decode the published document of one data source."""

    def fetch(
        self, source: DataSource, constraint: LookupConstraint
    ) -> list[Mapping[str, object]]: ...


def document_name(content: ContentType) -> str:
    if content is ContentType.AGENT_TOOLS:
        return TOOLS_DOCUMENT_NAME
    return IMAGE_DOCUMENT_NAME


def decode_document(text: str, *, source: DataSource) -> list[Mapping[str, object]]:
    """Decode document text into its item mappings."""

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SourceUnavailableError(source.id, f"invalid document: {exc}") from exc

    if isinstance(payload, Mapping):
        items = payload.get("items")
    else:
        items = payload
    if not isinstance(items, list):
        raise SourceUnavailableError(source.id, "document has no items array")

    decoded: list[Mapping[str, object]] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise SourceUnavailableError(
                source.id, f"items[{index}] must be an object, got {type(item).__name__}"
            )
        decoded.append(item)
    return decoded


class DirectoryTransport:
    """Read published documents from a local directory or ``file://`` URL."""

    def fetch(
        self, source: DataSource, constraint: LookupConstraint
    ) -> list[Mapping[str, object]]:
        del constraint
        path = _local_path(source.url) / document_name(source.content)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SourceUnavailableError(source.id, f"cannot read {path}: {exc}") from exc
        return decode_document(text, source=source)


class HttpTransport:
    """Download published documents over HTTP(S)."""

    def __init__(
        self,
        *,
        client: httpx.Client | None = None,
        timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._client = (
            client
            if client is not None
            else httpx.Client(
                timeout=timeout_seconds,
                follow_redirects=True,
                headers={"Accept": "application/json"},
            )
        )

    def fetch(
        self, source: DataSource, constraint: LookupConstraint
    ) -> list[Mapping[str, object]]:
        del constraint
        url = f"{source.url.rstrip('/')}/{document_name(source.content)}"
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SourceUnavailableError(
                source.id, f"HTTP {exc.response.status_code} fetching {url}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(source.id, f"cannot fetch {url}: {exc}") from exc
        return decode_document(response.text, source=source)

    def close(self) -> None:
        self._client.close()


class RoutingTransport:
    """
    Dispatch to the HTTP or directory transport based on the source URL scheme.

    Without an injected ``http`` transport an ``HttpTransport`` is created on first
    use and owned by this router; ``close`` releases it. Injected transports are
    left to their caller.
    """

    def __init__(
        self,
        *,
        http: Transport | None = None,
        directory: Transport | None = None,
    ) -> None:
        self._http = http
        self._owned_http: HttpTransport | None = None
        self._directory = directory if directory is not None else DirectoryTransport()

    def fetch(
        self, source: DataSource, constraint: LookupConstraint
    ) -> list[Mapping[str, object]]:
        scheme = urlsplit(source.url).scheme.lower()
        if scheme in {"http", "https"}:
            return self._http_transport().fetch(source, constraint)
        if scheme not in {"", "file"}:
            raise SourceUnavailableError(source.id, f"unsupported URL scheme {scheme!r}")
        return self._directory.fetch(source, constraint)

    def close(self) -> None:
        if self._owned_http is not None:
            self._owned_http.close()
            self._owned_http = None

    def __enter__(self) -> RoutingTransport:
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        del exc_type, exc, tb
        self.close()

    def _http_transport(self) -> Transport:
        if self._http is not None:
            return self._http
        if self._owned_http is None:
            self._owned_http = HttpTransport()
        return self._owned_http


def _local_path(url: str) -> Path:
    parts = urlsplit(url)
    if parts.scheme.lower() == "file":
        return Path(parts.path)
    return Path(url).expanduser()


__all__ = [
    "DEFAULT_HTTP_TIMEOUT_SECONDS",
    "DirectoryTransport",
    "HttpTransport",
    "RoutingTransport",
    "Transport",
    "decode_document",
    "document_name",
]
