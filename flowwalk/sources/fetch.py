"""Importing flow documents from URLs."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import httpx

from flowwalk.graph.document import DocumentError, parse_document
from flowwalk.graph.model import FlowGraph

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class FetchError(RuntimeError):
    """Raised when a remote document or listing cannot be retrieved."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


def normalize_url(url: str) -> str:
    """Trim the url and turn GitHub `blob` page links into raw file links."""
    cleaned = url.strip()
    if "github.com" in cleaned and "/blob/" in cleaned:
        cleaned = cleaned.replace("github.com", "raw.githubusercontent.com", 1).replace(
            "/blob/", "/", 1
        )
    return cleaned


@contextmanager
def client_context(
    client: Optional[httpx.Client], timeout: float = DEFAULT_TIMEOUT
) -> Iterator[httpx.Client]:
    if client is not None:
        yield client
        return

    managed_client = httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        yield managed_client
    finally:
        managed_client.close()


def get_json(
    url: str,
    *,
    client: Optional[httpx.Client] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    with client_context(client) as http_client:
        try:
            response = http_client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise FetchError(f"Network error fetching {url}: {exc}", url=url) from exc

        if response.is_error:
            raise FetchError(
                f"Import failed: status {response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise DocumentError(f"Response from {url} is not valid JSON") from exc


def fetch_document(
    url: str,
    *,
    client: Optional[httpx.Client] = None,
    start_step_id: Optional[str] = None,
) -> FlowGraph:
    if not url or not url.strip():
        raise FetchError("No url given")
    target = normalize_url(url)
    logger.info("Fetching flow document from %s", target)
    data = get_json(target, client=client)
    return parse_document(data, start_step_id=start_step_id)
