"""Environment and catalog configuration."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

CATALOG_ENV_VAR = "FLOWWALK_CATALOG"
TOKEN_ENV_VAR = "GITHUB_TOKEN"


class ConfigError(ValueError):
    """Raised for unreadable or malformed configuration."""


@dataclass(frozen=True)
class CatalogFolder:
    """A folder of flow documents in a GitHub repository."""

    id: str
    name: str
    owner: str
    repo: str
    path: str


DEFAULT_CATALOG_FOLDERS: List[CatalogFolder] = [
    CatalogFolder(
        id="demo-1",
        name="Example Flowcharts",
        owner="langchain-ai",
        repo="langgraph-example",
        path="examples",
    ),
    CatalogFolder(
        id="my-flows",
        name="My Saved Flows",
        owner="your-username",
        repo="your-repo",
        path="flowcharts",
    ),
]


def load_env_file(path: Optional[Path] = None) -> None:
    """Populate os.environ from a dotenv file; existing variables win."""
    path = path or Path.home() / ".env"
    try:
        raw = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return
    for line in raw.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.startswith("export "):
            stripped = stripped[7:].lstrip()
        if "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key:
            continue
        if (
            len(value) >= 2
            and value[0] == value[-1]
            and value[0] in ("'", '"')
        ):
            value = value[1:-1]
        if key not in os.environ:
            os.environ[key] = value


def github_token() -> Optional[str]:
    return os.environ.get(TOKEN_ENV_VAR) or None


def load_catalog_folders(path: Optional[Path] = None) -> List[CatalogFolder]:
    """Folders from `path`, $FLOWWALK_CATALOG, or the built-in defaults."""
    if path is None:
        env_path = os.environ.get(CATALOG_ENV_VAR)
        if not env_path:
            return list(DEFAULT_CATALOG_FOLDERS)
        path = Path(env_path).expanduser()

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read catalog config {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Catalog config {path} is not valid JSON: {exc}") from exc

    if not isinstance(raw, list):
        raise ConfigError("Catalog config must be a list of folders")

    folders: List[CatalogFolder] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ConfigError(f"Catalog folder #{index} is not an object")
        missing = [key for key in ("owner", "repo") if not item.get(key)]
        if missing:
            raise ConfigError(f"Catalog folder #{index} is missing {', '.join(missing)}")
        folders.append(
            CatalogFolder(
                id=str(item.get("id") or f"folder-{index}"),
                name=str(item.get("name") or item["repo"]),
                owner=str(item["owner"]),
                repo=str(item["repo"]),
                path=str(item.get("path") or ""),
            )
        )
    logger.debug("Loaded %d catalog folders from %s", len(folders), path)
    return folders


def find_folder(folders: List[CatalogFolder], selector: str) -> CatalogFolder:
    if selector.isdigit():
        index = int(selector)
        if index < 0 or index >= len(folders):
            raise ConfigError("Folder index out of range")
        return folders[index]

    needle = selector.strip().lower()
    for folder in folders:
        if needle in (folder.id.lower(), folder.name.lower()):
            return folder
    raise ConfigError("Folder not found. Run `flowwalk catalog` to list folders.")
