"""Tests for the click command-line interface."""

import pyperclip
import pytest
from click.testing import CliRunner

from password_vault.cli import cli


@pytest.fixture
def clipboard(monkeypatch):
    board = {"value": None, "available": True}

    def copy(value):
        if not board["available"]:
            raise pyperclip.PyperclipException("no clipboard")
        board["value"] = value

    def paste():
        if not board["available"]:
            raise pyperclip.PyperclipException("no clipboard")
        return board["value"]

    monkeypatch.setattr(pyperclip, "copy", copy)
    monkeypatch.setattr(pyperclip, "paste", paste)
    return board


@pytest.fixture
def run(manager, clipboard):
    runner = CliRunner()

    def invoke(args, input=None):
        return runner.invoke(cli, args, input=input, obj=manager)
    return invoke


def test_add_then_grep(run, clipboard):
    # password, master password, confirmation (first run)
    result = run(["add", "github.com", "alice"], input="X1\nmaster\nmaster\n")
    assert result.exit_code == 0, result.output
    assert "✅ Password inserted for alice at github.com" in result.output

    result = run(["grep", "github"], input="master\n")
    assert result.exit_code == 0, result.output
    assert "Password: X1" in result.output
    assert clipboard["value"] == "X1"


def test_first_run_password_mismatch_is_asked_again(run):
    result = run(["add", "github.com", "alice"], input="X1\nmaster\ntypo\nmaster\nmaster\n")
    assert result.exit_code == 0, result.output
    assert run(["grep", "github"], input="master\n").exit_code == 0


def test_grep_multiple_matches_masks_and_copies_chosen_row(run, manager, clipboard):
    manager.save_password("master", "foo.com", "a", "one")
    manager.save_password("master", "foo-bar.com", "b", "two")

    result = run(["grep", "foo"], input="master\n1\n")
    assert result.exit_code == 0, result.output
    assert "Found 2 matches" in result.output
    assert "one" not in result.output and "two" not in result.output
    assert clipboard["value"] == "two"


def test_grep_decrypts_once_when_copying_a_row(run, manager, clipboard, monkeypatch):
    manager.save_password("master", "foo.com", "a", "one")
    manager.save_password("master", "foo-bar.com", "b", "two")
    calls = []
    original = manager.find_password

    def counting_find(*args, **kwargs):
        calls.append(args)
        return original(*args, **kwargs)

    monkeypatch.setattr(manager, "find_password", counting_find)
    result = run(["grep", "foo"], input="master\n2\n")
    assert result.exit_code == 0, result.output
    assert len(calls) == 1
    assert clipboard["value"] == "one"


def test_grep_verbose_shows_passwords(run, manager):
    manager.save_password("master", "foo.com", "a", "one")
    manager.save_password("master", "foo-bar.com", "b", "two")
    result = run(["grep", "foo", "--verbose"], input="master\nq\n")
    assert "one" in result.output and "two" in result.output


def test_grep_no_match(run, manager):
    manager.save_password("master", "github.com", "alice", "X1")
    result = run(["grep", "gitlab"], input="master\n")
    assert result.exit_code == 0
    assert "No matches found" in result.output


def test_wrong_master_password_exits_nonzero(run, manager):
    manager.save_password("master", "github.com", "alice", "X1")
    result = run(["grep", "github"], input="wrong\n")
    assert result.exit_code == 1
    assert "wrong master password" in result.output


def test_add_from_clipboard(run, manager, clipboard):
    clipboard["value"] = "fromclip"
    result = run(["add", "github.com", "alice", "--clipboard"], input="master\nmaster\n")
    assert result.exit_code == 0, result.output
    assert manager.find_password("master", "github").record.password == "fromclip"


def test_clipboard_unavailable_falls_back_to_prompt(run, manager, clipboard):
    clipboard["available"] = False
    result = run(["add", "github.com", "alice", "--clipboard"], input="typed\nmaster\nmaster\n")
    assert result.exit_code == 0, result.output
    assert "Clipboard unavailable" in result.output
    assert manager.find_password("master", "github").record.password == "typed"


def test_add_generated_with_keychain(run, manager, secret_store, clipboard):
    result = run(["add", "github.com", "alice", "--generate", "--keychain"], input="master\nmaster\n")
    assert result.exit_code == 0, result.output
    assert "Keychain entry added." in result.output
    saved = manager.find_password("master", "github").record.password
    assert secret_store.entries[("github.com", "alice")] == saved
    assert clipboard["value"] == saved


def test_generate_and_clipboard_are_exclusive(run):
    result = run(["add", "github.com", "--generate", "--clipboard"])
    assert result.exit_code == 2


def test_sync_reports_failures(run, manager, secret_store):
    manager.save_password("master", "a.com", "u", "pw")
    manager.save_password("master", "b.com", "u", "pw")
    secret_store.fail_on.add("b.com")

    result = run(["sync"], input="master\n")
    assert result.exit_code == 1
    assert "a.com (u): added" in result.output
    assert "b.com (u): failed" in result.output
    assert "Synced 1 of 2 records." in result.output


def test_sync_points_to_reconcile_for_unchanged_entries(run, manager, secret_store):
    manager.save_password("master", "a.com", "u", "pw", keychain=True)
    del secret_store.entries[("a.com", "u")]

    result = run(["sync"], input="master\n")
    assert result.exit_code == 0, result.output
    assert "a.com (u): unchanged" in result.output
    assert "run reconcile" in result.output


def test_change_master_password(run, manager):
    manager.save_password("old", "github.com", "alice", "X1")
    result = run(["change-master-password"], input="old\nnew\nnew\n")
    assert result.exit_code == 0, result.output
    assert "1 passwords re-encrypted" in result.output
    assert manager.find_password("new", "github").record.password == "X1"


def test_change_master_password_without_vault_fails(run, manager):
    result = run(["change-master-password"], input="old\nnew\nnew\n")
    assert result.exit_code == 1
    assert "No vault found" in result.output
    assert not manager.vault_exists()


def test_import_csv(run, tmp_path):
    path = tmp_path / "export.csv"
    path.write_bytes(b"username,password,service\nalice,,github.com\n")
    result = run(["import-csv", str(path)], input="master\nmaster\n")
    assert result.exit_code == 0, result.output
    assert "Imported 0, updated 0, unchanged 0, skipped 1 rows." in result.output


def test_import_csv_without_header_fails(run, tmp_path):
    path = tmp_path / "export.csv"
    path.write_bytes(b"github.com,alice,X1\n")
    result = run(["import-csv", str(path)], input="master\nmaster\n")
    assert result.exit_code == 1
    assert "header row" in result.output


def test_import_csv_skips_oversized_row(run, manager, tmp_path):
    path = tmp_path / "export.csv"
    path.write_bytes(b"username,password,service\nalice," + b"x" * 200000 + b",big.com\nbob,pw,ok.com\n")
    result = run(["import-csv", str(path)], input="master\nmaster\n")
    assert result.exit_code == 0, result.output
    assert "Imported 1, updated 0, unchanged 0, skipped 1 rows." in result.output
    assert manager.list_services("master") == ["ok.com"]


def test_list_and_delete(run, manager):
    manager.save_password("master", "github.com", "alice", "X1")
    manager.save_password("master", "bank.com", "alice", "X2")

    result = run(["list"], input="master\n")
    assert "1. bank.com" in result.output
    assert "2. github.com" in result.output

    result = run(["delete", "github.com", "alice", "--yes"], input="master\n")
    assert result.exit_code == 0, result.output
    result = run(["delete", "github.com", "alice", "--yes"], input="master\n")
    assert result.exit_code == 1


def test_generate(run, clipboard):
    result = run(["generate", "--length", "24", "--no-special"])
    assert result.exit_code == 0
    assert len(clipboard["value"]) == 24


def test_backup_without_vault_fails(run):
    assert run(["backup"]).exit_code == 1


def test_info(run, manager):
    result = run(["info"])
    assert result.exit_code == 0
    assert manager.data_dir in result.output
