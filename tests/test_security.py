from types import SimpleNamespace

import app.core.config as config
import app.core.security as security


def test_token_round_trip(monkeypatch):
    monkeypatch.setattr(security, "settings", SimpleNamespace(auth_secret="s3cret", session_ttl_minutes=10))

    token = security.issue_token("admin@example.com", now=1_000)

    assert security.verify_token(token, now=1_000 + 9 * 60) == "admin@example.com"
    assert security.verify_token(token, now=1_000 + 11 * 60) is None


def test_tampered_or_foreign_tokens_are_rejected(monkeypatch):
    monkeypatch.setattr(security, "settings", SimpleNamespace(auth_secret="s3cret", session_ttl_minutes=10))
    token = security.issue_token("admin@example.com", now=1_000)
    subject, expires, signature = token.split(".")

    assert security.verify_token(f"{subject}.{int(expires) + 600}.{signature}", now=1_000) is None
    assert security.verify_token("not-a-token", now=1_000) is None

    monkeypatch.setattr(security, "settings", SimpleNamespace(auth_secret="other", session_ttl_minutes=10))
    assert security.verify_token(token, now=1_000) is None


def test_hash_password_depends_on_salt():
    assert security.hash_password("supersecret", b"a" * 16) != security.hash_password(
        "supersecret", b"b" * 16
    )


def test_missing_auth_secret_is_replaced_per_process(monkeypatch):
    monkeypatch.delenv("AUTH_SECRET", raising=False)

    first, second = config.Settings(), config.Settings()

    assert not config.auth_secret_configured()
    assert first.auth_secret != second.auth_secret
    assert len(first.auth_secret) == 64
    assert "change-me" not in (first.auth_secret, second.auth_secret)


def test_auth_secret_comes_from_environment(monkeypatch):
    monkeypatch.setenv("AUTH_SECRET", " from-env ")

    assert config.auth_secret_configured()
    assert config.Settings().auth_secret == "from-env"


def test_token_signed_with_a_guessable_secret_is_rejected(monkeypatch):
    monkeypatch.delenv("AUTH_SECRET", raising=False)
    monkeypatch.setattr(security, "settings", config.Settings())
    payload = "YWRtaW5AZXhhbXBsZS5jb20.4102444800"
    forged = f"{payload}.{security._sign(payload, 'change-me')}"

    assert security.verify_token(forged, now=1_000) is None
