import datetime
import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
TESTS_DIR = PROJECT_ROOT / "tests"
for path in (PROJECT_ROOT, SRC_DIR, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from fakes import FakeClock  # noqa: E402
from taskflow.storage.memory import InMemoryTaskStore  # noqa: E402

START = datetime.datetime(2026, 3, 10, 12, 0, tzinfo=datetime.timezone.utc)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
def memory_store(clock: FakeClock) -> InMemoryTaskStore:
    return InMemoryTaskStore(clock=clock)
