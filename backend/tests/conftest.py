from pathlib import Path
import os
import re
import uuid
import pytest

# Settings are read once at import time, so the environment must be in
# place before anything from `tisa` is imported.
TEST_DB = Path(__file__).resolve().parent / "test_app.db"
if TEST_DB.exists():
    TEST_DB.unlink()
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB}"
os.environ["JWT_SECRET"] = "test-signing-key-with-enough-bytes-for-hs256"
os.environ["AUTH_ITERATION_COUNT"] = "1000"
os.environ["AUTH_RATE_LIMIT_PER_MIN"] = "10000"
os.environ["EMAIL_BACKEND"] = "console"

from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session  # noqa: E402
from tisa.database import engine  # noqa: E402
from tisa.emails import EmailSender, get_email_sender  # noqa: E402
from tisa.main import app  # noqa: E402


class Outbox(EmailSender):
    """Email sender that keeps messages in memory."""

    def __init__(self):
        self.messages = []

    def send(self, to: str, subject: str, body: str) -> None:
        self.messages.append({'to': to, 'subject': subject, 'body': body})

    def code_for(self, to: str) -> str:
        """Verification code from the latest message sent to `to`."""
        for msg in reversed(self.messages):
            if msg['to'] == to:
                return re.search(r"code is (\d+)", msg['body']).group(1)
        raise AssertionError(f"no email sent to {to}")


@pytest.fixture(scope="session", autouse=True)
def reset_db():
    """Remove the throwaway SQLite database after the run."""
    yield
    engine.dispose()
    if TEST_DB.exists():
        try:
            TEST_DB.unlink()
        except OSError:
            pass


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture(autouse=True)
def outbox():
    box = Outbox()
    app.dependency_overrides[get_email_sender] = lambda: box
    yield box
    app.dependency_overrides.pop(get_email_sender, None)


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture
def unique():
    """Factory for collision-free usernames within the shared test DB."""
    return lambda prefix='user': f"{prefix}{uuid.uuid4().hex[:8]}"


@pytest.fixture
def register_user(client, outbox, unique):
    """Run Registrate + Verify and return `(username, email, password, token)`."""
    def _register(password: str = 'secret123'):
        username = unique()
        email = f"{username}@example.com"
        r = client.post('/api/Auth/Registrate', json={'username': username, 'email': email, 'password': password})
        assert r.status_code == 200, r.text
        pending_id = r.json()['id']
        v = client.post('/api/Auth/Verify', params={'pendingRegId': pending_id}, json=outbox.code_for(email))
        assert v.status_code == 200, v.text
        return username, email, password, v.json()['token']
    return _register


@pytest.fixture
def auth_headers(register_user):
    token = register_user()[3]
    return {'Authorization': f'Bearer {token}'}
