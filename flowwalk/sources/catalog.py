"""Browsing flow documents stored in GitHub repository folders."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from flowwalk.config import CatalogFolder
from flowwalk.graph.model import FlowGraph

from .fetch import FetchError, fetch_document, get_json

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"


@dataclass(frozen=True)
class CatalogFile:
    name: str
    download_url: str


class CatalogClient:
    """Lists and loads `.json` flow documents from catalog folders."""

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        token: Optional[str] = None,
        api_url: str = GITHUB_API,
    ):
        self.client = client
        self.token = token
        self.api_url = api_url.rstrip("/")

    def contents_url(self, folder: CatalogFolder) -> str:
        path = folder.path.strip("/")
        return f"{self.api_url}/repos/{folder.owner}/{folder.repo}/contents/{path}"

    def list_files(self, folder: CatalogFolder) -> List[CatalogFile]:
        url = self.contents_url(folder)
        logger.debug("Listing catalog folder %s at %s", folder.id, url)
        try:
            data = get_json(url, client=self.client, headers=self._headers())
        except FetchError as exc:
            raise FetchError(
                f"Failed to load folder {folder.name}. Check configuration or rate limits.",
                url=url,
                status_code=exc.status_code,
            ) from exc

        if not isinstance(data, list):
            raise FetchError("Unexpected response from GitHub.", url=url)

        files: List[CatalogFile] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            name = item.get("name") or ""
            if item.get("type") != "file" or not name.endswith(".json"):
                continue
            download_url = item.get("download_url")
            if not download_url:
                continue
            files.append(CatalogFile(name=name, download_url=download_url))
        return files

    def load_file(self, file: CatalogFile) -> FlowGraph:
        return fetch_document(file.download_url, client=self.client)

    def find_file(self, files: List[CatalogFile], selector: str) -> CatalogFile:
        if selector.isdigit():
            index = int(selector)
            if 0 <= index < len(files):
                return files[index]
            raise FetchError("File index out of range")
        for file in files:
            if file.name == selector or file.name == f"{selector}.json":
                return file
        raise FetchError(f"No catalog file named {selector}")

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers
