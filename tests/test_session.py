"""Tests for SessionManager: TTL, sliding renewal, sign-in, forget."""
import pytest

from onepass.exceptions import AuthError, ConfigError, StoreError
from onepass.vault import Session, SessionManager

TTL = 29 * 60


@pytest.fixture
def signed_in(session, clock):
    """A session persisted at the current fake time, then a fresh process."""
    session.ensure_session()
    return clock.now


def new_process(config, store, remote, clock):
    return SessionManager(config, store, remote, clock=clock)


class TestEnsureSession:
    """Tests for session reuse and renewal."""

    def test_signs_in_when_absent(self, session, remote, config):
        """Test signing in when no session exists."""
        assert session.ensure_session() == "token-1"
        assert remote.count("sign_in") == 1
        assert config.session_path.exists()

    def test_sign_in_uses_unsealed_credentials(self, session, remote):
        """Test that sign-in uses the unsealed credentials."""
        session.ensure_session()
        _, master, email, secret_key, subdomain = remote.calls[0]
        assert master == "correct horse battery staple"
        assert secret_key == "A3-SECRET-KEY"
        assert (email, subdomain) == ("alice@example.com", "example")

    def test_one_sign_in_per_process(self, session, remote):
        """Test that a process signs in at most once."""
        session.ensure_session()
        session.ensure_session(force_refresh=True)
        assert remote.count("sign_in") == 1

    @pytest.mark.parametrize("age,signs_in", [
        (0, False),
        (60, False),
        (TTL - 1, False),
        (TTL, True),
        (TTL + 1, True),
        (3 * TTL, True),
    ])
    def test_ttl(self, config, store, remote, clock, signed_in, age, signs_in):
        """Test reuse and renewal around the TTL."""
        clock.advance(age)
        remote.token = "token-2"
        token = new_process(config, store, remote, clock).ensure_session()
        assert remote.count("sign_in") == (2 if signs_in else 1)
        assert token == ("token-2" if signs_in else "token-1")

    def test_force_refresh_signs_in(self, config, store, remote, clock, signed_in):
        """Test that a forced refresh signs in."""
        clock.advance(10)
        new_process(config, store, remote, clock).ensure_session(force_refresh=True)
        assert remote.count("sign_in") == 2

    def test_reuse_slides_the_window(self, config, store, remote, clock, signed_in):
        """Test that reuse extends the session window."""
        clock.advance(TTL - 10)
        new_process(config, store, remote, clock).ensure_session()
        assert config.session_path.stat().st_mtime == pytest.approx(clock.now)
        clock.advance(TTL - 10)
        new_process(config, store, remote, clock).ensure_session()
        assert remote.count("sign_in") == 1

    def test_unreadable_session_signs_in(self, config, store, remote, clock, signed_in):
        """Test that an unreadable session triggers sign-in."""
        config.session_path.write_bytes(b"garbage")
        new_process(config, store, remote, clock).ensure_session()
        assert remote.count("sign_in") == 2

    def test_persisted_form(self, config, store, session):
        """Test the sealed session document."""
        session.ensure_session()
        persisted = Session.model_validate(store.read_value(config.session_path))
        assert persisted.token == "token-1"
        assert persisted.created_at.tzinfo is not None


class TestSignIn:
    """Tests for sign-in."""

    def test_rejected(self, session, remote, config):
        """Test that a rejected sign-in is not retried."""
        remote.fail_sign_in = True
        with pytest.raises(AuthError):
            session.ensure_session()
        assert remote.count("sign_in") == 1
        assert not config.session_path.exists()

    def test_missing_master_password(self, config, store, remote, clock):
        """Test a missing sealed master password."""
        manager = SessionManager(config, store, remote, clock=clock)
        with pytest.raises(ConfigError, match="master password"):
            manager.sign_in()
        assert remote.count("sign_in") == 0

    def test_missing_secret_key(self, config, store, remote, clock, credentials):
        """Test a missing sealed secret key."""
        config.secret_key_path.unlink()
        with pytest.raises(ConfigError, match="secret key"):
            SessionManager(config, store, remote, clock=clock).sign_in()

    def test_credentials_keep_inner_whitespace(self, config, store, remote, clock):
        """Test that only the trailing newline is dropped from a credential."""
        store.write(config.master_secret_path, b"  pass phrase  \r\n")
        store.write(config.secret_key_path, b"A3-SECRET-KEY\n")
        SessionManager(config, store, remote, clock=clock).sign_in()
        assert remote.calls[0][1] == "  pass phrase  "
        assert remote.calls[0][3] == "A3-SECRET-KEY"

    def test_credentials_not_utf8(self, config, store, remote, clock):
        """Test that an undecodable credential is a StoreError."""
        store.write(config.master_secret_path, b"\xff\xfe\n")
        store.write(config.secret_key_path, b"A3-SECRET-KEY\n")
        with pytest.raises(StoreError, match="master password"):
            SessionManager(config, store, remote, clock=clock).sign_in()
        assert remote.count("sign_in") == 0


class TestForget:
    """Tests for forgetting the session."""

    def test_forget_without_session(self, session, config):
        """Test forgetting when no session exists."""
        session.forget()
        assert not config.session_path.exists()

    def test_forget_twice(self, session, config):
        """Test that forget is idempotent."""
        session.ensure_session()
        session.forget()
        session.forget()
        assert not config.session_path.exists()

    def test_forget_drops_in_memory_token(self, session, remote):
        """Test that forget drops the in-memory token."""
        session.ensure_session()
        session.forget()
        session.ensure_session()
        assert remote.count("sign_in") == 2

    def test_forget_revokes_cached_key(self, session, sealer):
        """Test that forget revokes cached key material."""
        sealer.keys  # load
        session.forget()
        assert sealer._keys is None
