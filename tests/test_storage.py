"""Tests for the vault file: open, save, re-keying, locking, backups."""

import os
from datetime import datetime, timedelta, timezone

import pytest

from password_vault import vault as vault_ops
from password_vault.constants import FORMAT_VERSION, NONCE_LENGTH, SALT_LENGTH
from password_vault.exceptions import VaultBusy, VaultNotFound, WrongPasswordOrCorrupt
from password_vault.models import CredentialRecord, SingleMatch
from password_vault.storage import (
    VaultStore, deserialize_records, serialize_records, unpack_vault_file,
)

from conftest import FAST_ITERATIONS

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestOpenAndSave:
    def test_missing_file_is_empty_vault(self, store):
        vault = store.open("pw")
        assert vault.records == []
        assert len(vault.salt) == SALT_LENGTH
        assert not store.exists()

    def test_empty_file_is_empty_vault(self, store, vault_path):
        open(vault_path, 'wb').close()
        assert store.open("pw").records == []

    def test_github_scenario(self, store):
        vault = store.open("master")
        vault_ops.upsert(vault, CredentialRecord("github.com", "alice", "X1"))
        store.save(vault, "master")

        reopened = store.open("master")
        result = vault_ops.search(reopened, "github")
        assert isinstance(result, SingleMatch)
        assert result.record.password == "X1"
        assert result.record.username == "alice"

    def test_roundtrip_preserves_order_and_fields(self, store):
        vault = store.open("pw")
        for i, service in enumerate(["zeta.io", "alpha.com", "mid.org"]):
            vault_ops.upsert(vault, CredentialRecord(
                service, f"user{i}", f"pw{i}", updated_at=T0 + timedelta(minutes=i),
                keychain="mirrored" if i == 1 else None,
            ))
        store.save(vault, "pw")

        reopened = store.open("pw")
        assert [r.to_dict() for r in reopened] == [r.to_dict() for r in vault]

    def test_file_layout(self, store, vault_path):
        vault = store.open("pw")
        store.save(vault, "pw")
        with open(vault_path, 'rb') as f:
            data = f.read()
        assert data[0] == FORMAT_VERSION
        assert data[1:1 + SALT_LENGTH] == vault.salt
        salt, nonce, ciphertext = unpack_vault_file(data)
        assert len(nonce) == NONCE_LENGTH
        assert ciphertext

    def test_salt_is_kept_across_writes(self, store, vault_path):
        vault = store.open("pw")
        store.save(vault, "pw")
        first_salt = store.open("pw").salt

        vault = store.open("pw")
        vault_ops.upsert(vault, CredentialRecord("a.com", "", "x"))
        store.save(vault, "pw")
        assert store.open("pw").salt == first_salt

    def test_no_plaintext_on_disk(self, store, vault_path):
        vault = store.open("pw")
        vault_ops.upsert(vault, CredentialRecord("github.com", "alice", "sup3rsecret"))
        store.save(vault, "pw")
        with open(vault_path, 'rb') as f:
            data = f.read()
        assert b"sup3rsecret" not in data
        assert b"github.com" not in data

    def test_wrong_password(self, store):
        vault = store.open("right")
        vault_ops.upsert(vault, CredentialRecord("a.com", "", "x"))
        store.save(vault, "right")
        with pytest.raises(WrongPasswordOrCorrupt):
            store.open("wrong")

    @pytest.mark.parametrize("content", [b"\x01short", b"\x09" + b"\x00" * 64])
    def test_truncated_or_unknown_version_is_corrupt(self, store, vault_path, content):
        with open(vault_path, 'wb') as f:
            f.write(content)
        with pytest.raises(WrongPasswordOrCorrupt):
            store.open("pw")

    def test_atomic_write_leaves_no_temp_files(self, store, vault_path):
        vault = store.open("pw")
        store.save(vault, "pw")
        store.save(vault, "pw")
        leftovers = [n for n in os.listdir(os.path.dirname(vault_path)) if n.endswith(".tmp")]
        assert leftovers == []

    def test_failed_write_keeps_old_vault(self, store, vault_path, monkeypatch):
        vault = store.open("pw")
        vault_ops.upsert(vault, CredentialRecord("a.com", "", "old"))
        store.save(vault, "pw")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        vault_ops.upsert(vault, CredentialRecord("a.com", "", "new"))
        with pytest.raises(OSError):
            store.save(vault, "pw")
        monkeypatch.undo()

        assert store.open("pw").records[0].password == "old"
        leftovers = [n for n in os.listdir(os.path.dirname(vault_path)) if n.endswith(".tmp")]
        assert leftovers == []

    def test_read_is_retried_once_on_transient_error(self, store, monkeypatch):
        vault = store.open("pw")
        vault_ops.upsert(vault, CredentialRecord("a.com", "", "x"))
        store.save(vault, "pw")

        real_open = open
        calls = {"n": 0}

        def flaky_open(path, mode='r', *args, **kwargs):
            if path == store.vault_path and 'r' in mode:
                calls["n"] += 1
                if calls["n"] == 1:
                    raise PermissionError("file is being replaced")
            return real_open(path, mode, *args, **kwargs)

        monkeypatch.setattr("builtins.open", flaky_open)
        assert len(store.open("pw")) == 1
        assert calls["n"] == 2


class TestSerialization:
    def test_roundtrip(self):
        records = [CredentialRecord("a.com", "", "p,w\"'", updated_at=T0)]
        assert deserialize_records(serialize_records(records)) == records

    def test_garbage_payload_is_corrupt(self):
        with pytest.raises(WrongPasswordOrCorrupt):
            deserialize_records(bytearray(b"not json"))


class TestChangeMasterPassword:
    def test_rekey(self, store):
        with store.transaction("old") as vault:
            vault_ops.upsert(vault, CredentialRecord("github.com", "alice", "X1"))
        old_salt = store.open("old").salt

        assert store.change_master_password("old", "new") == 1

        reopened = store.open("new")
        assert reopened.records[0].password == "X1"
        assert reopened.salt != old_salt
        with pytest.raises(WrongPasswordOrCorrupt):
            store.open("old")

    def test_rekey_with_wrong_old_password_changes_nothing(self, store):
        with store.transaction("old") as vault:
            vault_ops.upsert(vault, CredentialRecord("a.com", "", "x"))

        with pytest.raises(WrongPasswordOrCorrupt):
            store.change_master_password("bad", "new")
        assert len(store.open("old")) == 1

    def test_rekey_keeps_backup_of_old_file(self, store):
        with store.transaction("old") as vault:
            vault_ops.upsert(vault, CredentialRecord("a.com", "", "x"))
        store.change_master_password("old", "new")

        backups = os.listdir(store.backups_dir)
        assert len(backups) == 1
        backup = VaultStore(os.path.join(store.backups_dir, backups[0]), iterations=FAST_ITERATIONS)
        assert backup.open("old").records[0].password == "x"

    def test_rekey_without_vault_fails(self, store, vault_path):
        with pytest.raises(VaultNotFound):
            store.change_master_password("anything", "new")
        assert not os.path.exists(vault_path)


class TestLocking:
    def test_concurrent_opener_gets_vault_busy(self, store, vault_path):
        other = VaultStore(vault_path, iterations=FAST_ITERATIONS, lock_timeout=0.1)
        with store.lock():
            with pytest.raises(VaultBusy):
                with other.transaction("pw"):
                    pass

    def test_lock_is_released_after_transaction(self, store, vault_path):
        with store.transaction("pw") as vault:
            vault_ops.upsert(vault, CredentialRecord("a.com", "", "x"))
        other = VaultStore(vault_path, iterations=FAST_ITERATIONS, lock_timeout=0.1)
        with other.transaction("pw") as vault:
            assert len(vault) == 1

    def test_lock_is_released_when_transaction_fails(self, store, vault_path):
        with pytest.raises(RuntimeError):
            with store.transaction("pw"):
                raise RuntimeError("boom")
        with store.lock() as lock:
            assert lock.locked

    def test_failed_transaction_writes_nothing(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction("pw") as vault:
                vault_ops.upsert(vault, CredentialRecord("a.com", "", "x"))
                raise RuntimeError("boom")
        assert not store.exists()

    def test_readers_do_not_need_the_lock(self, store):
        with store.transaction("pw") as vault:
            vault_ops.upsert(vault, CredentialRecord("a.com", "", "x"))
        with store.lock():
            assert len(store.open("pw")) == 1


class TestBackup:
    def test_no_vault_no_backup(self, store):
        assert store.create_backup() is None

    def test_backup_is_byte_copy(self, store, vault_path):
        with store.transaction("pw"):
            pass
        path = store.create_backup()
        with open(path, 'rb') as a, open(vault_path, 'rb') as b:
            assert a.read() == b.read()

    def test_storage_info(self, store):
        with store.transaction("pw"):
            pass
        info = store.get_storage_info()
        assert info["vault_file"] == store.vault_path
        assert info["vault_file_size"] > 0
