import importlib.util
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from tisa import emails, models, services
from tisa.config import settings
from tisa.utils.rate_limit import InMemoryRateLimiter


def _pending(username, expire_date):
    return models.PendingRegistration(
        username=username,
        email=f"{username}@example.com",
        password_hash='hash',
        salt='salt',
        verification_code='123456',
        expire_date=expire_date,
    )


def test_purge_removes_only_expired_pending(db, unique):
    now = models.utcnow()
    stale = _pending(unique('stale'), now - timedelta(hours=1))
    fresh = _pending(unique('fresh'), now + timedelta(hours=1))
    db.add(stale)
    db.add(fresh)
    db.commit()
    stale_id, fresh_id = stale.id, fresh.id

    removed = services.AuthService(db).purge_expired()
    assert removed >= 1
    db.expire_all()
    assert db.get(models.PendingRegistration, stale_id) is None
    assert db.get(models.PendingRegistration, fresh_id) is not None


def test_credential_endpoints_are_rate_limited(client, monkeypatch):
    monkeypatch.setattr("tisa.main._auth_rate_limiter", InMemoryRateLimiter())
    monkeypatch.setattr(settings, "AUTH_RATE_LIMIT_PER_MIN", 1)
    first = client.post('/api/Auth/Authorize', json={'username': 'ghost', 'password': 'x'})
    assert first.status_code == 400
    second = client.post('/api/Auth/Authorize', json={'username': 'ghost', 'password': 'x'})
    assert second.status_code == 429
    assert 'Retry-After' in second.headers
    assert second.json()['message'].startswith('rate limit exceeded')
    # other paths keep their own window
    assert client.post('/api/Auth/Verify', params={'pendingRegId': 1}, json='000000').status_code == 400


def test_rate_limiter_window():
    limiter = InMemoryRateLimiter()
    assert limiter.allow('k', 2, 60) == (True, 0)
    assert limiter.allow('k', 2, 60) == (True, 0)
    allowed, retry_after = limiter.allow('k', 2, 60)
    assert not allowed
    assert retry_after >= 1
    limiter.reset('k')
    assert limiter.allow('k', 2, 60)[0]


def test_request_id_header_exists(client):
    r = client.get('/health')
    assert r.status_code == 200
    assert "X-Request-ID" in r.headers
    echoed = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert echoed.headers['X-Request-ID'] == 'abc123'


def test_verify_without_body_is_bad_request(client):
    r = client.post('/api/Auth/Verify', params={'pendingRegId': 1})
    assert r.status_code == 400
    assert r.json()['message'].startswith('Invalid request data.')


def test_default_sender_is_console(caplog):
    sender = emails.get_email_sender()
    assert isinstance(sender, emails.ConsoleEmailSender)
    with caplog.at_level('INFO', logger='tisa.email'):
        sender.send_email_code('someone@example.com', '424242')
    assert '424242' in caplog.text


def test_smtp_sender_sends_code(monkeypatch):
    sent = {}

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            sent['host'] = (host, port)

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            sent['tls'] = True

        def login(self, username, password):
            sent['login'] = (username, password)

        def send_message(self, msg):
            sent['msg'] = msg

    monkeypatch.setattr(emails.smtplib, 'SMTP', FakeSMTP)
    sender = emails.SmtpEmailSender('smtp.example.com', 2525, 'noreply@example.com', 'mailer', 'pw')
    sender.send_email_code('new@example.com', '000123')
    assert sent['host'] == ('smtp.example.com', 2525)
    assert sent['tls'] is True
    assert sent['login'] == ('mailer', 'pw')
    assert sent['msg']['To'] == 'new@example.com'
    assert '000123' in sent['msg'].get_content()


def test_expire_date_reads_back_as_comparable_utc(client, outbox, db, unique):
    username = unique()
    r = client.post('/api/Auth/Registrate', json={'username': username, 'email': f"{username}@example.com", 'password': 'secret123'})
    assert r.status_code == 200
    pending = db.get(models.PendingRegistration, r.json()['id'])
    stored = models.as_utc(pending.expire_date)
    assert stored.tzinfo is not None
    assert models.utcnow() < stored <= models.utcnow() + settings.PENDING_REGISTRATION_TTL
    assert not pending.is_expired()
    assert pending.is_expired(now=models.utcnow() + settings.PENDING_REGISTRATION_TTL + timedelta(seconds=1))


def test_naive_expire_date_is_treated_as_utc():
    past = _pending('naivepast', datetime(2000, 1, 1))
    future = _pending('naivefuture', (datetime.now(timezone.utc) + timedelta(hours=1)).replace(tzinfo=None))
    assert past.is_expired()
    assert not future.is_expired()
    assert models.as_utc(datetime(2000, 1, 1)).tzinfo == timezone.utc


def test_out_of_range_ids_are_bad_requests(client, auth_headers):
    huge = 10 ** 30
    verify = client.post('/api/Auth/Verify', params={'pendingRegId': huge}, json='123456')
    assert verify.status_code == 400
    assert verify.json()['message'].startswith('Invalid request data.')
    assert client.post('/api/Auth/Verify', params={'pendingRegId': 0}, json='123456').status_code == 400
    assert client.get(f'/api/Category/{huge}').status_code == 400
    assert client.get('/api/Category', params={'parentCategoryId': huge}).status_code == 400
    assert client.delete(f'/api/Category/{huge}', headers=auth_headers).status_code == 400
    created = client.post(
        '/api/Category',
        json={'name': 'Huge', 'photoPath': 'https://example.com/p.png', 'parentCategoryId': huge},
        headers=auth_headers,
    )
    assert created.status_code == 400


def test_auth_errors_use_message_shape(client):
    missing = client.get('/api/Auth/Me')
    assert missing.status_code in (401, 403)
    assert 'message' in missing.json()
    bad = client.get('/api/Auth/Me', headers={'Authorization': 'Bearer invalid.token.here'})
    assert bad.status_code == 401
    assert bad.json() == {'message': 'invalid token'}


def test_purge_script_runs_from_a_plain_checkout():
    script = Path(__file__).resolve().parents[1] / 'scripts' / 'purge_pending_registrations.py'
    spec = importlib.util.spec_from_file_location('purge_pending_registrations', script)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    assert str(Path(__file__).resolve().parents[1]) in sys.path
    assert module.main() >= 0
