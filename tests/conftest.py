import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure project root is on sys.path so `import smartpaste` works when running pytest from root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from smartpaste.engine.engine import SmartPasteEngine  # noqa: E402
from smartpaste.storage.base import InMemoryKeyValueStore  # noqa: E402
from smartpaste.templates.store import TemplateStore  # noqa: E402

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def kv():
    """Fresh in-memory key/value store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv):
    """Empty, initialized template store."""
    return TemplateStore(kv).init()


@pytest.fixture
def engine(kv):
    """Initialized engine with a fixed clock and no cloud classifier."""
    return SmartPasteEngine(kv, clock=fixed_clock).init()


@pytest.fixture
def clock():
    return fixed_clock
