"""Shared fixtures for the password vault tests."""

import logging
import threading

import pytest

from password_vault.keychain import SecretStore, SecretStoreError
from password_vault.manager import PasswordVaultManager
from password_vault.storage import VaultStore

FAST_ITERATIONS = 1000


class FakeSecretStore(SecretStore):
    """In-memory secret store that can be told to fail or hang per service."""

    def __init__(self):
        self.entries = {}
        self.fail_on = set()
        self.hang_on = set()
        self.set_calls = []
        self.release = threading.Event()

    def set(self, service, username, password):
        self.set_calls.append((service, username))
        if service in self.hang_on:
            self.release.wait(5)
        if service in self.fail_on:
            raise SecretStoreError(f"cannot write {service}")
        self.entries[(service, username)] = password

    def get(self, service, username):
        if service in self.fail_on:
            raise SecretStoreError(f"cannot read {service}")
        return self.entries.get((service, username))


@pytest.fixture
def vault_path(tmp_path):
    return str(tmp_path / "vault" / ".vault.enc")


@pytest.fixture
def store(vault_path):
    return VaultStore(vault_path, iterations=FAST_ITERATIONS, lock_timeout=0.2)


@pytest.fixture
def secret_store():
    fake = FakeSecretStore()
    yield fake
    fake.release.set()


@pytest.fixture
def manager(tmp_path, secret_store):
    return PasswordVaultManager(
        data_dir=str(tmp_path / "data"),
        secret_store=secret_store,
        iterations=FAST_ITERATIONS,
        lock_timeout=0.2,
        keychain_timeout=0.5,
        logger=logging.getLogger("password_vault.tests"),
    )
