from pathlib import Path
import os
import pytest

# Point the app at a throwaway SQLite file before any `assessment` import.
_DB_PATH = Path(__file__).resolve().parents[1] / "test_assessment.db"
if _DB_PATH.exists():
    _DB_PATH.unlink()
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from builders import (  # noqa: E402
    FakeClock,
    fill_blank_question,
    matching_question,
    ordering_question,
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fill_blank():
    return fill_blank_question()


@pytest.fixture
def ordering():
    return ordering_question()


@pytest.fixture
def matching():
    return matching_question()
