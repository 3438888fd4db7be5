import json
import os
import sys
import tempfile
from pathlib import Path
import unittest
from unittest import mock

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from flowwalk.config import (
    CATALOG_ENV_VAR,
    DEFAULT_CATALOG_FOLDERS,
    ConfigError,
    find_folder,
    github_token,
    load_catalog_folders,
    load_env_file,
)


class TestEnvFile(unittest.TestCase):
    def test_loads_values_without_overriding(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / ".env"
            path.write_text(
                "# comment\n"
                "export GITHUB_TOKEN='abc123'\n"
                "FLOWWALK_TEST_KEEP=file\n"
                "not a pair\n",
                encoding="utf-8",
            )
            with mock.patch.dict(os.environ, {"FLOWWALK_TEST_KEEP": "env"}, clear=True):
                load_env_file(path)
                self.assertEqual(os.environ["GITHUB_TOKEN"], "abc123")
                self.assertEqual(os.environ["FLOWWALK_TEST_KEEP"], "env")
                self.assertEqual(github_token(), "abc123")

    def test_missing_file_is_ignored(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            load_env_file(Path("/nonexistent/.env"))
            self.assertIsNone(github_token())


class TestCatalogConfig(unittest.TestCase):
    def test_defaults_without_config(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(load_catalog_folders(), DEFAULT_CATALOG_FOLDERS)

    def test_reads_config_from_env(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "catalog.json"
            path.write_text(
                json.dumps([{"id": "team", "owner": "acme", "repo": "flows", "path": "charts"}]),
                encoding="utf-8",
            )
            with mock.patch.dict(os.environ, {CATALOG_ENV_VAR: str(path)}, clear=True):
                folders = load_catalog_folders()

        self.assertEqual(len(folders), 1)
        self.assertEqual(folders[0].id, "team")
        self.assertEqual(folders[0].name, "flows")
        self.assertEqual(folders[0].path, "charts")

    def test_rejects_malformed_config(self):
        cases = ["{}", "[1]", json.dumps([{"owner": "acme"}]), "not json"]
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "catalog.json"
            for raw in cases:
                path.write_text(raw, encoding="utf-8")
                with self.assertRaises(ConfigError):
                    load_catalog_folders(path)

            with self.assertRaises(ConfigError):
                load_catalog_folders(Path(tmpdir) / "missing.json")


class TestFindFolder(unittest.TestCase):
    def test_by_index_id_or_name(self):
        folders = DEFAULT_CATALOG_FOLDERS
        self.assertEqual(find_folder(folders, "1").id, "my-flows")
        self.assertEqual(find_folder(folders, "demo-1").id, "demo-1")
        self.assertEqual(find_folder(folders, "example flowcharts").id, "demo-1")

    def test_unknown_folder(self):
        with self.assertRaises(ConfigError):
            find_folder(DEFAULT_CATALOG_FOLDERS, "7")
        with self.assertRaises(ConfigError):
            find_folder(DEFAULT_CATALOG_FOLDERS, "nope")


if __name__ == "__main__":
    unittest.main()
