#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Command-line interface for the Secure Password Vault

Every command prompts for the master password, performs one vault
operation and exits. Errors from the vault engine are reported with a
non-zero exit code.
"""

import functools
import click
import pyperclip
from password_vault.exceptions import VaultError
from password_vault.generator import DEFAULT_LENGTH, MIN_LENGTH
from password_vault.keychain import SyncStatus
from password_vault.manager import PasswordVaultManager
from password_vault.models import MultipleMatches, NoMatch, UpsertResult
from password_vault.vault import mask_matches


def report_errors(func):
    """Turn vault errors into click errors so they exit with status 1"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (VaultError, ValueError) as e:
            raise click.ClickException(str(e)) from e
    return wrapper


def ask_master_password(manager, confirm_new=False):
    """
    Prompt for the master password

    Args:
        manager: PasswordVaultManager in use
        confirm_new: Ask twice when this call will create the vault
    """
    first_run = confirm_new and not manager.vault_exists()
    if first_run:
        click.echo("No vault found. Choose a master password to create one.")
    return click.prompt("Master password", hide_input=True, confirmation_prompt=first_run)


def copy_to_clipboard(value):
    """Copy to the clipboard; return False when no clipboard is available"""
    try:
        pyperclip.copy(value)
    except pyperclip.PyperclipException:
        return False
    return True


def password_from_clipboard():
    """
    Read the password to save from the clipboard

    Falls back to a masked prompt when the clipboard is unavailable or empty.
    """
    try:
        value = pyperclip.paste()
    except pyperclip.PyperclipException:
        value = None

    value = (value or "").strip()
    if not value:
        click.echo("⚠️ Clipboard unavailable or empty.")
        return click.prompt("Password to save", hide_input=True)
    return value


@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.option(
    '--data-dir',
    envvar='PASSWORD_VAULT_HOME',
    type=click.Path(file_okay=False),
    default=None,
    help='Directory holding the vault (default ~/.password_vault).',
)
@click.pass_context
def cli(ctx, data_dir):
    """Generate, store, search and sync passwords in an encrypted local vault."""
    if ctx.obj is None:
        ctx.obj = PasswordVaultManager(data_dir=data_dir)


@cli.command()
@click.option('--length', '-n', type=click.IntRange(min=MIN_LENGTH), default=DEFAULT_LENGTH, show_default=True)
@click.option('--no-special', is_flag=True, help='Leave out special characters.')
@click.option('--no-uppercase', is_flag=True, help='Leave out uppercase letters.')
@click.option('--no-digits', is_flag=True, help='Leave out digits.')
@click.pass_obj
@report_errors
def generate(manager, length, no_special, no_uppercase, no_digits):
    """Generate a random password and copy it to the clipboard."""
    info = manager.generate_password(length, not no_special, not no_uppercase, not no_digits)
    click.echo(f"🔑 Generated password: {info['password']}")
    click.echo(f"🔒 Strength: {info['strength']} (~{info['entropy_bits']:.0f} bits)")
    if copy_to_clipboard(info['password']):
        click.echo("Password copied to clipboard!")


@cli.command()
@click.argument('service')
@click.argument('username', required=False, default="")
@click.option('--generate', '-g', 'use_generator', is_flag=True, help='Generate a new password.')
@click.option('--clipboard', '-c', is_flag=True, help='Save the password currently in the clipboard.')
@click.option('--keychain', '-k', is_flag=True, help='Also mirror the password to the OS keychain.')
@click.pass_obj
@report_errors
def add(manager, service, username, use_generator, clipboard, keychain):
    """Save a password for SERVICE (and optional USERNAME)."""
    if use_generator and clipboard:
        raise click.UsageError("--generate and --clipboard are mutually exclusive.")

    if use_generator:
        password = manager.generate_password()['password']
    elif clipboard:
        password = password_from_clipboard()
    else:
        password = click.prompt("Password to save", hide_input=True)

    master_password = ask_master_password(manager, confirm_new=True)
    result, outcome = manager.save_password(master_password, service, username, password, keychain=keychain)

    if result is UpsertResult.UNCHANGED:
        click.echo(f"Password for {username} at {service} is already up to date.")
    else:
        click.echo(f"✅ Password {result.value} for {username} at {service}")

    if outcome is not None:
        if outcome.failed:
            click.echo(f"⚠️ Keychain sync failed: {outcome.reason}")
        elif outcome.status is SyncStatus.UNCHANGED:
            click.echo("Keychain entry already up to date.")
        else:
            click.echo(f"Keychain entry {outcome.status.value}.")

    if use_generator:
        copied = copy_to_clipboard(password)
        suffix = " - also copied to clipboard" if copied else ""
        click.echo(f"Password{suffix}: {password}")


@cli.command()
@click.argument('query')
@click.option('--verbose', '-v', is_flag=True, help='Show passwords of all matches.')
@click.pass_obj
@report_errors
def grep(manager, query, verbose):
    """Find passwords whose service name contains QUERY."""
    master_password = ask_master_password(manager)
    # One decryption serves both the listing and the row copied below
    result = manager.find_password(master_password, query, verbose=True)

    if isinstance(result, NoMatch):
        click.echo("No matches found")
        return

    if isinstance(result, MultipleMatches):
        click.echo(f"Found {len(result)} matches:")
        shown = result if verbose else mask_matches(result)
        for idx, view in enumerate(shown.views, 1):
            click.echo(f"{idx}. Service: {view.service}, Username: {view.username}, Password: {view.password}")

        choice = click.prompt(
            "Row number to copy to clipboard (q to quit)",
            type=click.Choice([str(i) for i in range(1, len(result) + 1)] + ['q']),
            default='q',
            show_choices=False,
        )
        if choice == 'q':
            return
        index = int(choice)
        chosen = result.views[index - 1]
        if copy_to_clipboard(chosen.password):
            click.echo(f"Password from row {index} copied to clipboard!")
        else:
            click.echo(f"Password: {chosen.password}")
        return

    view = result.record
    click.echo(f"Service: {view.service}, Username: {view.username}, Password: {view.password}")
    if copy_to_clipboard(view.password):
        click.echo("Password copied to clipboard!")


@cli.command('list')
@click.pass_obj
@report_errors
def list_services(manager):
    """List all saved services."""
    master_password = ask_master_password(manager)
    names = manager.list_services(master_password)
    if not names:
        click.echo("No saved services.")
        return
    for idx, name in enumerate(names, 1):
        click.echo(f"{idx}. {name}")
    click.echo(f"\nTotal: {len(names)} services")


@cli.command()
@click.argument('service')
@click.argument('username', required=False, default="")
@click.option('--yes', is_flag=True, help='Do not ask for confirmation.')
@click.pass_obj
@report_errors
def delete(manager, service, username, yes):
    """Delete the password saved for SERVICE and USERNAME."""
    if not yes:
        click.confirm(f"Delete password for {username} at {service}?", abort=True)
    master_password = ask_master_password(manager)
    if manager.delete_password(master_password, service, username):
        click.echo(f"✅ Deleted password for {username} at {service}")
    else:
        raise click.ClickException(f"No matching entry found for {username} at {service}")


@cli.command()
@click.argument('query', required=False)
@click.pass_obj
@report_errors
def sync(manager, query):
    """Mirror passwords to the OS keychain (all, or those matching QUERY).

    Records already mirrored are reported unchanged without contacting the
    keychain. Run reconcile if entries were removed from the keychain
    outside the vault.
    """
    master_password = ask_master_password(manager)
    outcomes = manager.sync_keychain(master_password, query)

    failures = [outcome for outcome in outcomes if outcome.failed]
    for outcome in outcomes:
        line = f"{outcome.service} ({outcome.username}): {outcome.status.value}"
        if outcome.failed:
            line += f" - {outcome.reason}"
        click.echo(line)
    click.echo(f"Synced {len(outcomes) - len(failures)} of {len(outcomes)} records.")
    if any(outcome.status is SyncStatus.UNCHANGED for outcome in outcomes):
        click.echo("Entries marked unchanged were not re-checked; run reconcile if they were removed from the keychain.")
    if failures:
        raise click.ClickException(f"{len(failures)} record(s) failed to sync; run sync again to retry them.")


@cli.command()
@click.pass_obj
@report_errors
def reconcile(manager):
    """Re-check keychain entries and repair stale sync flags."""
    master_password = ask_master_password(manager)
    report = manager.reconcile_keychain(master_password)
    click.echo(f"Checked {report.checked} records, repaired {report.repaired} flags.")
    for outcome in report.failed:
        click.echo(f"⚠️ {outcome.service} ({outcome.username}): {outcome.reason}")


@cli.command('change-master-password')
@click.pass_obj
@report_errors
def change_master_password(manager):
    """Re-encrypt the vault under a new master password."""
    old_password = click.prompt("Current master password", hide_input=True)
    new_password = click.prompt("New master password", hide_input=True, confirmation_prompt=True)
    count = manager.change_master_password(old_password, new_password)
    click.echo(f"✅ Master password changed. {count} passwords re-encrypted.")


@cli.command('import-csv')
@click.argument('csv_file', type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
@report_errors
def import_csv(manager, csv_file):
    """Import passwords from a CSV file with username, password, service columns."""
    master_password = ask_master_password(manager, confirm_new=True)
    report = manager.import_csv_file(master_password, csv_file)
    click.echo(
        f"Imported {report.imported}, updated {report.updated}, "
        f"unchanged {report.unchanged}, skipped {report.skipped} rows."
    )


@cli.command()
@click.pass_obj
@report_errors
def backup(manager):
    """Copy the encrypted vault file into the backups directory."""
    path = manager.backup_vault()
    if path is None:
        raise click.ClickException("No vault file to backup.")
    click.echo(f"✅ Backup created at: {path}")


@cli.command()
@click.pass_obj
def info(manager):
    """Show where the vault and its files are stored."""
    details = manager.storage_info()
    click.echo(f"Data directory: {details['data_directory']}")
    click.echo(f"Vault file: {details['vault_file']}")
    click.echo(f"Lock file: {details['lock_file']}")
    click.echo(f"Backups directory: {details['backups_directory']}")
    click.echo(f"Log file: {details['log_file']}")
    if "vault_file_size" in details:
        click.echo(f"Vault file size: {details['vault_file_size']} bytes")
        click.echo(f"Last modified: {details['last_modified']}")


def main():
    cli(prog_name="password-vault")


if __name__ == "__main__":
    main()
