"""
Shared fixtures: an in-memory stand-in for a MongoDB collection, a clean
configuration environment, and helpers for building real git repositories.
"""

from __future__ import annotations

import json
import os
import shutil
import subprocess
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, Iterable, List, Optional

import pytest

from resource_sync.config.loader import CONFIG_FILE_VAR, ENV_VARS, MASTER_CONFIG_VAR


# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------

class FakeCollection:
    """The slice of pymongo's Collection API that MongoStore uses."""

    def __init__(self):
        self.docs: List[Dict[str, Any]] = []
        self._next_id = 1

    def delete_many(self, filter: Dict[str, Any]):
        assert filter == {}
        deleted = len(self.docs)
        self.docs = []
        return SimpleNamespace(deleted_count=deleted)

    def insert_one(self, doc: Dict[str, Any]):
        doc.setdefault("_id", self._next_id)
        self._next_id += 1
        self.docs.append(dict(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    def count_documents(self, filter: Dict[str, Any]) -> int:
        return len(self.docs)

    def records(self) -> List[Dict[str, Any]]:
        """Stored documents without their _id."""
        return [{k: v for k, v in d.items() if k != "_id"} for d in self.docs]


@pytest.fixture
def collection() -> FakeCollection:
    return FakeCollection()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@pytest.fixture
def clean_env(monkeypatch):
    """Remove every configuration variable from the environment."""
    for name in ENV_VARS.values():
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv(MASTER_CONFIG_VAR, raising=False)
    monkeypatch.delenv(CONFIG_FILE_VAR, raising=False)
    return monkeypatch


@pytest.fixture
def full_env(clean_env, tmp_path):
    """All required configuration set through individual env vars."""
    clean_env.setenv("MONGO_CONNECTION_URL", "mongodb://localhost:27017")
    clean_env.setenv("MONGO_DB_NAME", "sgci")
    clean_env.setenv("MONGO_COLLECTION_NAME", "resources")
    clean_env.setenv("GIT_RESOURCES_REPO", "https://example.org/resources.git")
    clean_env.setenv("LOCAL_REPO_DIR", str(tmp_path / "mirror"))
    return clean_env


# ---------------------------------------------------------------------------
# Data files
# ---------------------------------------------------------------------------

def write_data_file(
    directory: Path,
    name: str,
    records: Iterable[Any],
    field: str = "sgciResources",
) -> Path:
    """Write a data file holding `records` under `field`."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(json.dumps({field: list(records)}), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Real git repositories
# ---------------------------------------------------------------------------

requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git is not installed"
)


@pytest.fixture
def git_env(monkeypatch, tmp_path):
    """Isolate git from the user's configuration and fix the identity."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Resource Bot")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "bot@example.org")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Resource Bot")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "bot@example.org")
    return monkeypatch


def run_git(repo: Path, *args: str, env: Optional[Dict[str, str]] = None) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=str(repo),
        capture_output=True,
        text=True,
        env={**os.environ, **(env or {})},
        check=True,
    )
    return result.stdout.strip()


def init_repo(path: Path, branch: str = "main") -> Path:
    path.mkdir(parents=True)
    run_git(path, "init", "-q")
    run_git(path, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
    return path


def commit(
    repo: Path,
    timestamp: int,
    files: Optional[Dict[str, Any]] = None,
    remove: Iterable[str] = (),
    message: str = "update resources",
) -> str:
    """Commit file changes with a fixed author date; return the new sha."""
    for name, records in (files or {}).items():
        write_data_file((repo / name).parent, Path(name).name, records)
    for name in remove:
        (repo / name).unlink()

    run_git(repo, "add", "-A")
    date = f"{timestamp} +0000"
    run_git(
        repo, "commit", "-q", "--allow-empty", "-m", message,
        env={"GIT_AUTHOR_DATE": date, "GIT_COMMITTER_DATE": date},
    )
    return run_git(repo, "rev-parse", "HEAD")
