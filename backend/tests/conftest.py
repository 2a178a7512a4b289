from pathlib import Path
import os
import uuid
import pytest

TESTS_DIR = Path(__file__).resolve().parent
CONTENT_DIR = TESTS_DIR / "fixtures" / "content"
DB_PATH = TESTS_DIR.parent / "test.db"

# Configure the app before any test module imports it.
os.environ["APP_ENV"] = "test"
os.environ["CONTENT_DIR"] = str(CONTENT_DIR)
os.environ["DATABASE_URL"] = f"sqlite:///{DB_PATH}"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["JWT_ISSUER"] = "auth-service"
os.environ["INTERNAL_SECRET"] = "test-internal-secret"

if DB_PATH.exists():
    DB_PATH.unlink()


@pytest.fixture(scope="session", autouse=True)
def reset_db():
    """Ensure a fresh SQLite database for tests and remove it afterwards."""
    from learning_service.database import create_db_and_tables
    create_db_and_tables(drop_first=True)
    yield
    from learning_service.database import engine
    engine.dispose()
    if DB_PATH.exists():
        try:
            DB_PATH.unlink()
        except OSError:
            pass


@pytest.fixture
def user_id():
    return str(uuid.uuid4())


@pytest.fixture
def auth_headers(user_id):
    from learning_service.auth import create_access_token
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def internal_headers():
    return {"X-Internal-Secret": "test-internal-secret"}


@pytest.fixture
def library():
    from learning_service.utils.content_library import ContentLibrary
    return ContentLibrary(CONTENT_DIR)


@pytest.fixture
def session():
    from sqlmodel import Session
    from learning_service.database import engine
    with Session(engine) as s:
        yield s
