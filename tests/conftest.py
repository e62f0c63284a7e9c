import logging
import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import chainlet`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from chainlet.config import ConfigManager  # noqa: E402
from chainlet.observability import ROOT_LOGGER_NAME, StructuredHandler  # noqa: E402
from chainlet.runtime import Runtime  # noqa: E402


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: slow correctness tests (skipped unless CHAINLET_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_slow = _env_flag('CHAINLET_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set CHAINLET_RUN_SLOW=1 to enable'))


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Each test starts from default configuration and no CHAINLET_* overrides."""
    for name in list(os.environ):
        if name.startswith("CHAINLET_"):
            monkeypatch.delenv(name, raising=False)
    ConfigManager().reset()
    yield
    ConfigManager().reset()
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if isinstance(handler, StructuredHandler):
            root.removeHandler(handler)
    root.setLevel(logging.NOTSET)


@pytest.fixture
def runtime():
    """Fresh runtime with alice funded at 100."""
    rt = Runtime()
    rt.balances.set_balance("alice", 100)
    return rt
