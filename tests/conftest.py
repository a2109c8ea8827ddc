import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import arbiter`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: slow correctness tests (skipped unless ARBITER_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_slow = _env_flag('ARBITER_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set ARBITER_RUN_SLOW=1 to enable'))


@pytest.fixture(autouse=True)
def _fresh_runtime(monkeypatch):
    """Default configuration and an empty event bus for every test."""
    from arbiter.config import get_config_manager
    from arbiter.events import reset_event_bus

    for name in list(os.environ):
        if name.startswith("ARBITER_") and name != "ARBITER_RUN_SLOW":
            monkeypatch.delenv(name)
    get_config_manager().reset()
    reset_event_bus()
    yield
    get_config_manager().reset()


@pytest.fixture(scope="session")
def sample_input() -> bytes:
    # 80-byte block-header-sized input
    return bytes(range(80))


@pytest.fixture(scope="session")
def sample_trace(sample_input):
    from arbiter.trace import build_trace

    return build_trace(sample_input)
