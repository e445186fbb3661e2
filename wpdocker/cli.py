"""Operator commands for the credential vault.

Usage:
    wp-docker-vault init
    wp-docker-vault set CLOUDFLARE_API_TOKEN
    eval "$(wp-docker-vault env)"
"""
import shlex
import logging
from pathlib import Path
from contextlib import contextmanager

import click
from pydantic import ValidationError

from .conf import KNOWN_CREDENTIALS
from .data import validate_name
from .version import __title__, __version__
from .vault import (
    CredentialVault,
    VaultConfig,
    VaultError,
    TooManyAttempts,
)

logger = logging.getLogger("wpdocker.cli")

NO_VAULT_MESSAGE = "No vault yet at {path}. Run 'wp-docker-vault init' to create one."


@contextmanager
def vault_errors():
    """Turn vault failures into a non-zero exit with a readable message."""
    try:
        yield
    except TooManyAttempts as err:
        raise click.ClickException(f"{err}. Vault left unchanged.") from err
    except (VaultError, ValueError) as err:
        raise click.ClickException(str(err)) from err


def prompt_pin(attempt: int) -> str:
    label = "Vault PIN" if attempt == 1 else f"Vault PIN (attempt {attempt})"
    return click.prompt(label, hide_input=True, show_default=False)


def prompt_new_pin(vault: CredentialVault) -> str:
    minimum = vault.config.min_pin_length
    while True:
        pin = click.prompt(
            f"New vault PIN (min {minimum} characters)",
            hide_input=True,
            confirmation_prompt=True,
        )
        if len(pin) >= minimum:
            return pin
        click.echo(f"PIN must be at least {minimum} characters.", err=True)


def unlock(vault: CredentialVault):
    with vault_errors():
        vault.recover()
    if not vault.exists:
        raise click.ClickException(NO_VAULT_MESSAGE.format(path=vault.path))
    with vault_errors():
        return vault.unlock_with_retry(prompt_pin)


@click.group()
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the vault file.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(__version__, prog_name=__title__)
@click.pass_context
def cli(ctx, config_dir, verbose):
    """Encrypted credential vault for WordPress Docker deployments."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        config = VaultConfig.from_env(config_dir=config_dir)
    except ValidationError as err:
        raise click.ClickException(f"Invalid vault configuration: {err}") from err
    ctx.obj = CredentialVault(config)


@cli.command()
@click.pass_obj
def init(vault: CredentialVault):
    """Create an empty vault protected by a new PIN."""
    if vault.exists:
        raise click.ClickException(f"A vault already exists at {vault.path}")
    pin = prompt_new_pin(vault)
    with vault_errors():
        vault.setup(pin)
    click.echo(f"Vault created at {vault.path}")


@cli.command("set")
@click.argument("name")
@click.option("--value", default=None, help="Secret value (prompted if omitted).")
@click.pass_obj
def set_secret(vault: CredentialVault, name, value):
    """Store or replace the secret NAME."""
    with vault_errors():
        validate_name(name)
        vault.recover()
    if name not in KNOWN_CREDENTIALS:
        logger.info("Storing non-standard credential %s", name)
    if vault.exists:
        _, pin = unlock(vault)
    else:
        click.echo(f"No vault yet at {vault.path}; creating it.")
        pin = prompt_new_pin(vault)
    if value is None:
        value = click.prompt(f"Value for {name}", hide_input=True)
    with vault_errors():
        vault.store(name, value, pin)
    click.echo(f"Stored {name}")


@cli.command("get")
@click.argument("name")
@click.pass_obj
def get_secret(vault: CredentialVault, name):
    """Print the value of secret NAME."""
    secrets, _ = unlock(vault)
    if name not in secrets:
        raise click.ClickException(f"No secret named {name}")
    click.echo(secrets[name])


@cli.command("list")
@click.pass_obj
def list_secrets(vault: CredentialVault):
    """List stored secret names."""
    secrets, _ = unlock(vault)
    for name in secrets.names():
        click.echo(name)


@cli.command()
@click.pass_obj
def env(vault: CredentialVault):
    """Print shell export lines for every stored secret."""
    secrets, _ = unlock(vault)
    for name in secrets.names():
        click.echo(f"export {name}={shlex.quote(secrets[name])}")


@cli.command()
@click.argument("name")
@click.pass_obj
def remove(vault: CredentialVault, name):
    """Delete the secret NAME."""
    _, pin = unlock(vault)
    try:
        with vault_errors():
            vault.remove(name, pin)
    except KeyError:
        raise click.ClickException(f"No secret named {name}") from None
    click.echo(f"Removed {name}")


@cli.command()
@click.pass_obj
def status(vault: CredentialVault):
    """Show whether a vault exists, without unlocking it."""
    info = vault.status()
    if not info["exists"]:
        click.echo(NO_VAULT_MESSAGE.format(path=info["path"]))
    else:
        click.echo(f"Vault: {info['path']}")
    if info["backup"]:
        click.echo("Leftover backup from an interrupted write (recovered on next use)")
    for name in info["temporaries"]:
        click.echo(f"Leftover temporary file: {name}")


@cli.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
def destroy(vault: CredentialVault, yes):
    """Delete the vault and every secret in it."""
    if not vault.exists:
        raise click.ClickException(NO_VAULT_MESSAGE.format(path=vault.path))
    if not yes:
        click.confirm(f"Delete {vault.path} and all stored secrets?", abort=True)
    with vault_errors():
        vault.destroy()
    click.echo("Vault destroyed")
