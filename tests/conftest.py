import os
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = PROJECT_ROOT / "backend"
TESTS_DIR = Path(__file__).resolve().parent
for path in (BACKEND_DIR, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("DB_NAME", "examsuite_test")

from examsuite.services.submissions import SubmissionService

from fakes import FakeClock, FakeDatabase
from helpers import make_scorer, run, seed_exam


@pytest.fixture
def db():
    database = FakeDatabase()
    run(database.submissions.create_index([("exam_id", 1), ("student_id", 1)], unique=True))
    return database


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scorer():
    client, _ = make_scorer(default='{"score": 80, "review": "Good explanation."}')
    return client


@pytest.fixture
def service(db, clock, scorer):
    seed_exam(db, clock)
    return SubmissionService(db, scorer=scorer, clock=clock)
