"""Pytest configuration and fixtures for bumpguard tests."""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from bumpguard.core.models import EvidenceKind, PackageUpdate, StrategyResult
from bumpguard.evidence.base import EvidenceStrategy


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def write_files(root: Path, files: dict[str, str]) -> Path:
    """Write a mapping of relative paths to contents below root."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


@pytest.fixture
def express_codebase(temp_dir: Path) -> Path:
    """Create a small TypeScript/JavaScript project that uses express."""
    return write_files(
        temp_dir / "app",
        {
            "package.json": """{
  "name": "sample-app",
  "dependencies": {
    "express": "^4.18.2",
    "express-session": "^1.17.0"
  },
  "devDependencies": {
    "@types/express": "^4.17.21"
  }
}
""",
            "src/index.ts": """import express, { Router } from 'express';
import type { Request, Response } from 'express';

const app = express();
const router = Router();

app.get('/', (req: Request, res: Response) => {
  res.send('ok');
});

export default app;
""",
            "src/routes/users.js": """const express = require('express');
const { json } = require('express');
const router = express.Router();
router.use(json());
module.exports = router;
""",
            "src/util.js": """export function add(a, b) {
  return a + b;
}
""",
            "tests/app.test.js": """const express = require('express');
test('creates an app', () => {
  const app = express();
});
""",
            "node_modules/express/index.js": """module.exports = require('./lib/express');
""",
        },
    )


@pytest.fixture
def python_codebase(temp_dir: Path) -> Path:
    """Create a small Python project that uses requests."""
    return write_files(
        temp_dir / "service",
        {
            "requirements.txt": "requests==2.31.0\nrequests-toolbelt==1.0.0\n",
            "service/client.py": """import requests
from requests.adapters import HTTPAdapter

session = requests.Session()
response = requests.get("https://example.com")
adapter = HTTPAdapter()


class Custom(requests.Session):
    pass


def fetch(s: requests.Session) -> None:
    s.mount("https://", adapter)
    print(requests.codes.ok)
""",
            "service/plugins.py": """import importlib

module = importlib.import_module("requests")
""",
            "tests/test_client.py": """import requests


def test_get():
    requests.get("https://example.com")
""",
            ".venv/lib/requests/api.py": "import requests\n",
        },
    )


@pytest.fixture
def sample_config(temp_dir: Path) -> Path:
    """Create a sample .bumpguard.yml configuration file."""
    content = """version: 1

evidence:
  short_circuit_confidence: 0.9
  enabled_strategies:
    - release-notes
    - commit-history

scanner:
  max_files: 200
  exclude_patterns:
    - node_modules/**
    - fixtures/**

engine:
  max_concurrency: 2
"""
    file_path = temp_dir / ".bumpguard.yml"
    file_path.write_text(content)
    return file_path


@pytest.fixture
def env_with_tokens(monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> None:
    """Set up environment variables for testing."""
    monkeypatch.setenv("GITHUB_TOKEN", "test-github-token")
    monkeypatch.setenv("BUMPGUARD_CACHE_DIR", str(temp_dir / "cache"))


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove sensitive environment variables for testing."""
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GH_TOKEN", raising=False)
    monkeypatch.delenv("BUMPGUARD_CACHE_DIR", raising=False)


class StubStrategy(EvidenceStrategy):
    """Strategy returning a canned result, for chain tests."""

    kind = EvidenceKind.CHANGELOG

    def __init__(
        self,
        name: str,
        confidence: float,
        content: str = "",
        lines: list[str] | None = None,
        applicable: bool = True,
        kind: EvidenceKind | None = None,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.confidence = confidence
        self.content = content or f"{name} content"
        self.lines = lines or []
        self.applicable = applicable
        self.error = error
        self.calls = 0
        if kind is not None:
            self.kind = kind

    async def is_applicable(self, update: PackageUpdate) -> bool:
        return self.applicable

    async def try_analyze(self, update: PackageUpdate) -> StrategyResult | None:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.make_result(self.content, list(self.lines))


@pytest.fixture
def express_update() -> PackageUpdate:
    return PackageUpdate(name="express", from_version="4.0.0", to_version="5.0.0")


@pytest.fixture
def make_strategy() -> type[StubStrategy]:
    """Factory for canned evidence strategies."""
    return StubStrategy
