"""Shared fixtures: a keyfile-sealed config in tmp_path and in-memory fakes."""
import time

import pytest

from onepass.conf import Config
from onepass.exceptions import AuthError, FetchError
from onepass.vault import (
    CacheRepository,
    EncryptedStore,
    KeyfileSealer,
    SessionManager,
    generate_key,
)
from onepass.resolver import Resolver


# --- Fakes ---

class FakeRemote:
    """In-memory stand-in for the op client."""

    def __init__(self, items=None, documents=None, totp=None, token="token-1"):
        self.items = items or []
        self.documents = documents or {}
        self.totp = totp or {}
        self.token = token
        self.fail_sign_in = False
        self.calls = []

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)

    def sign_in(self, master_password, email, secret_key, subdomain):
        self.calls.append(("sign_in", master_password, email, secret_key, subdomain))
        if self.fail_sign_in:
            raise AuthError("sign-in rejected")
        return self.token

    def list_items(self, token):
        self.calls.append(("list_items", token))
        return list(self.items)

    def get_item(self, uuid, token):
        self.calls.append(("get_item", uuid, token))
        if uuid not in self.documents:
            raise FetchError(f"fetching item {uuid} failed")
        return self.documents[uuid]

    def get_totp(self, uuid, token):
        self.calls.append(("get_totp", uuid, token))
        if uuid not in self.totp:
            raise FetchError(f"fetching one-time code for {uuid} failed")
        return self.totp[uuid]


class FakeClipboard:
    def __init__(self):
        self.history = []

    def set(self, text):
        self.history.append(text)

    @property
    def value(self):
        return self.history[-1] if self.history else None


class FakeClock:
    def __init__(self, now=None):
        # whole seconds so file mtimes compare exactly
        self.now = now if now is not None else float(int(time.time()))

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# --- Item documents ---

def overview(uuid, title, template="001"):
    return {"uuid": uuid, "templateUuid": template, "overview": {"title": title}}


def login_document(uuid, username="alice", password="s3cret", sections=None):
    return {
        "uuid": uuid,
        "templateUuid": "001",
        "details": {
            "fields": [
                {"designation": "username", "name": "username", "value": username},
                {"designation": "password", "name": "password", "value": password},
            ],
            "sections": sections or [],
        },
    }


def password_document(uuid, password="xyz", sections=None):
    return {
        "uuid": uuid,
        "templateUuid": "005",
        "details": {"password": password, "sections": sections or []},
    }


# --- Fixtures ---

@pytest.fixture
def config(tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    keyfile = home / "keys"
    keyfile.write_text(f"v1={generate_key()}\n")
    return Config(
        self_key="v1",
        email="alice@example.com",
        subdomain="example",
        home=home,
        sealer="keyfile",
    )


@pytest.fixture
def sealer(config):
    return KeyfileSealer(config.key_path)


@pytest.fixture
def store(sealer):
    return EncryptedStore(sealer, "v1")


@pytest.fixture
def credentials(config, store):
    """Sealed master password and secret key in place."""
    store.write(config.master_secret_path, b"correct horse battery staple\n")
    store.write(config.secret_key_path, b"A3-SECRET-KEY\n")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def remote():
    return FakeRemote(
        items=[
            overview("u-login", "GitHub", "001"),
            overview("u-pass", "Router", "005"),
            overview("u-note", "Notes", "003"),
        ],
        documents={
            "u-login": login_document(
                "u-login",
                sections=[{"fields": [{"t": "pin", "v": "1234"}]}],
            ),
            "u-pass": password_document("u-pass"),
        },
        totp={"u-login": "123456"},
    )


@pytest.fixture
def session(config, store, remote, clock, credentials):
    return SessionManager(config, store, remote, clock=clock)


@pytest.fixture
def cache(config, store, session, remote):
    return CacheRepository(config, store, session, remote)


@pytest.fixture
def resolver(cache, session, remote):
    return Resolver(cache, session, remote)
