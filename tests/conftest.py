import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

TEST_DB_FILE = "./test_quizcore.db"

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["TESTING"] = "true"
os.environ["GRADING_MODE"] = "inline"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["GRADING_BACKOFF_DELAY"] = "0"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_FILE}"

import uuid
import fakeredis
import pytest
from rq import SimpleWorker
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app.core.database import Base, get_db
from app.core.constants import RoleEnum
from app.core.security import create_access_token
from app.jobs.grading import build_grading_queue
from app.utils import deps as deps_utils
import app.models  # noqa: F401
import main

test_db_url = os.environ["DATABASE_URL"]

@pytest.fixture(scope="session")
def database_engine():
    engine = create_engine(test_db_url, connect_args={"check_same_thread": False})
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)

@pytest.fixture(scope="function")
def db_session(database_engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=database_engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()

@pytest.fixture(scope="function")
def redis_connection():
    connection = fakeredis.FakeRedis(server=fakeredis.FakeServer())
    yield connection
    connection.flushall()

@pytest.fixture(scope="function")
def client(db_session, redis_connection):
    # Re-initialize the app for each test function to ensure a clean state
    from importlib import reload
    reload(main)
    main.app.dependency_overrides[get_db] = lambda: db_session
    main.app.dependency_overrides[deps_utils.get_db] = lambda: db_session
    main.app.dependency_overrides[deps_utils.get_transactional_db] = lambda: db_session
    with TestClient(main.app) as test_client:
        main.app.state.grading_queue = build_grading_queue(redis_connection)
        yield test_client

@pytest.fixture
def grading_queue(client):
    return main.app.state.grading_queue

@pytest.fixture
def run_grading_worker(db_session):
    """Runs queued grading jobs in-process until the queue is empty."""
    def _run(queue):
        SimpleWorker([queue.queue], connection=queue.connection).work(burst=True)
        # Jobs score in their own session.
        db_session.expire_all()
    return _run

def _auth_headers(user_id: str, role: RoleEnum) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, role=role)}"}

@pytest.fixture
def admin_headers():
    return _auth_headers(f"admin-{uuid.uuid4().hex[:8]}", RoleEnum.ADMIN)

@pytest.fixture
def student_headers():
    return _auth_headers(f"student-{uuid.uuid4().hex[:8]}", RoleEnum.USER)

@pytest.fixture
def other_student_headers():
    return _auth_headers(f"student-{uuid.uuid4().hex[:8]}", RoleEnum.USER)

@pytest.fixture
def quiz_factory(client, admin_headers):
    """Creates a test with questions through the API and returns (test, questions) as JSON dicts."""
    def _quiz_factory(questions, **test_fields):
        payload = {
            "title": f"Quiz {uuid.uuid4().hex[:6]}",
            "status": "published",
            "pass_score": 60,
            "max_attempts": 3,
        }
        payload.update(test_fields)
        r_test = client.post("/tests/", headers=admin_headers, json=payload)
        assert r_test.status_code == 201, r_test.text
        test = r_test.json()["data"]

        r_questions = client.post(f"/tests/{test['id']}/questions", headers=admin_headers, json=questions)
        assert r_questions.status_code == 201, r_questions.text
        return test, r_questions.json()["data"]
    return _quiz_factory
