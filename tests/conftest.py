# tests/conftest.py
from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Env the workflow runner would inject; cleared so a developer shell or CI
# job running these tests cannot leak into Settings().
_ACTION_ENV = (
    "INPUT_API_KEY",
    "RESOURCEPULSE_API_KEY",
    "INPUT_SERVER_ADDRESS",
    "RESOURCEPULSE_SERVER_ADDRESS",
    "INPUT_COMMENT_MODE",
    "COMMENT_MODE",
    "INPUT_GITHUB_TOKEN",
    "GITHUB_TOKEN",
    "GITHUB_EVENT_PATH",
    "GITHUB_EVENT_NAME",
    "GITHUB_RUN_ID",
    "GITHUB_SERVER_URL",
    "GITHUB_API_URL",
    "GITHUB_OUTPUT",
    "RUNNER_TEMP",
    "INPUT_BACKEND_TIMEOUT_S",
    "BACKEND_TIMEOUT_S",
    "INPUT_COMPILE_TIMEOUT_S",
    "COMPILE_TIMEOUT_S",
    "INPUT_BICEP_VERSION",
    "BICEP_VERSION",
    "INPUT_LOG_LEVEL",
    "LOG_LEVEL",
    "INPUT_LOG_FORMAT",
    "LOG_FORMAT",
    "INPUT_METRICS_TEXTFILE",
    "METRICS_TEXTFILE",
)


@pytest.fixture(autouse=True)
def _clean_action_env(monkeypatch):
    for name in _ACTION_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def pr_event() -> Dict[str, Any]:
    return {
        "pull_request": {
            "number": 42,
            "title": "Add storage",
            "head": {"sha": "abc123", "ref": "feature/storage"},
            "base": {"ref": "main"},
            "user": {"login": "octo"},
        },
        "repository": {"owner": {"login": "contoso"}, "name": "infra"},
    }


@pytest.fixture()
def event_file(tmp_path, pr_event) -> Path:
    path = tmp_path / "event.json"
    path.write_text(json.dumps(pr_event), encoding="utf-8")
    return path


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run `async def` tests on a fresh event loop; pytest-asyncio is not required."""
    if not asyncio.iscoroutinefunction(pyfuncitem.obj):
        return None
    wanted = pyfuncitem._fixtureinfo.argnames
    asyncio.run(pyfuncitem.obj(**{k: pyfuncitem.funcargs[k] for k in wanted}))
    return True
