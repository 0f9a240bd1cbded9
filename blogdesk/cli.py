"""Command-line interface for blogdesk."""

import sys
from pathlib import Path

import click

from .core.auth import AuthManager
from .core.config import AppConfig
from .core.models import Role
from .core.session_store import SessionStore
from .core.settings import SettingsService
from .core.settings_store import SettingsStore
from .core.storage import Storage, StorageError
from .core.users import UserStore


def _load_config(base_dir: Path | None) -> AppConfig:
    try:
        return AppConfig.from_env(base_dir)
    except ValueError as e:
        click.echo(click.style("Error: ", fg="red") + str(e))
        sys.exit(1)


def _open_storage(config: AppConfig) -> Storage:
    storage = Storage(config.db_path)
    if not storage.exists:
        click.echo(
            click.style("Error: ", fg="red")
            + "Site not initialized. Run 'blogdesk init' first."
        )
        sys.exit(1)
    return storage


dir_option = click.option(
    "--dir",
    "-d",
    "base_dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Base directory for the site (default: current directory)",
)


@click.group()
@click.version_option(prog_name="blogdesk")
def main():
    """blogdesk - blog CMS access gate and site settings."""
    pass


@main.command()
@dir_option
@click.option(
    "--email",
    "-e",
    default="admin@example.com",
    show_default=True,
    help="Email of the admin account",
)
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing database",
)
def init(base_dir: Path | None, email: str, force: bool):
    """Initialize a new blogdesk site.

    Creates the database, an admin account with a generated password and
    the default settings.
    """
    config = _load_config(base_dir)
    config.ensure_directories()

    storage = Storage(config.db_path)
    if storage.exists and not force:
        click.echo(
            click.style("Error: ", fg="red")
            + f"Database already exists at {config.db_path}"
        )
        click.echo("Use --force to overwrite.")
        sys.exit(1)

    auth = AuthManager(bcrypt_rounds=config.bcrypt_rounds)
    password = auth.generate_password()

    storage.initialize(force=force)
    try:
        UserStore(storage).create(
            email=email,
            password_hash=auth.hash_password(password),
            role=Role.ADMIN,
            name="Administrator",
        )
    except ValueError as e:
        click.echo(click.style("Error: ", fg="red") + str(e))
        sys.exit(1)

    seeded = SettingsService(SettingsStore(storage)).initialize_defaults()

    click.echo()
    click.echo(click.style("blogdesk initialized successfully!", fg="green", bold=True))
    click.echo()
    click.echo(click.style("=" * 60, fg="yellow"))
    click.echo(click.style("IMPORTANT: Save these credentials securely!", fg="yellow", bold=True))
    click.echo(click.style("=" * 60, fg="yellow"))
    click.echo()
    click.echo(f"  Sign-in URL: http://{config.host}:{config.port}{config.signin_path}")
    click.echo(f"  Email:       {email}")
    click.echo(f"  Password:    {password}")
    click.echo()
    click.echo(f"Seeded {seeded} default settings.")
    click.echo()


@main.command()
@click.option(
    "--host",
    "-h",
    default="127.0.0.1",
    help="Host to bind to (default: 127.0.0.1)",
)
@click.option(
    "--port",
    "-p",
    default=8000,
    type=int,
    help="Port to bind to (default: 8000)",
)
@click.option(
    "--reload",
    is_flag=True,
    help="Enable auto-reload for development",
)
@click.option(
    "--workers",
    "-w",
    default=1,
    type=int,
    help="Number of worker processes (default: 1)",
)
@dir_option
def run(host: str, port: int, reload: bool, workers: int, base_dir: Path | None):
    """Start the blogdesk server."""
    import uvicorn

    config = _load_config(base_dir)
    _open_storage(config)

    click.echo(f"Starting blogdesk on http://{host}:{port}")
    if not config.cron_secret:
        click.echo(
            click.style("Warning: ", fg="yellow")
            + "BLOGDESK_CRON_SECRET is not set, cron endpoints will reject every call."
        )

    uvicorn.run(
        "blogdesk.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=workers if not reload else 1,
    )


@main.command("seed-settings")
@dir_option
def seed_settings(base_dir: Path | None):
    """Insert missing default settings. Existing values are kept."""
    config = _load_config(base_dir)
    storage = _open_storage(config)

    try:
        inserted = SettingsService(SettingsStore(storage)).initialize_defaults()
    except StorageError as e:
        click.echo(click.style("Error: ", fg="red") + str(e))
        sys.exit(1)

    click.echo(click.style("Default settings seeded: ", fg="green") + f"{inserted} inserted")


@main.command("hash-password")
@click.option(
    "--password",
    "-p",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Password to hash",
)
def hash_password(password: str):
    """Generate a bcrypt hash for a password."""
    auth = AuthManager()
    hash_str = auth.hash_password(password)

    click.echo()
    click.echo("Password hash (for manual database editing):")
    click.echo(hash_str)
    click.echo()


@main.command("set-password")
@click.argument("email")
@click.option(
    "--password",
    "-p",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="New password",
)
@dir_option
def set_password(email: str, password: str, base_dir: Path | None):
    """Set a user's password and sign out their sessions."""
    config = _load_config(base_dir)
    storage = _open_storage(config)

    if len(password) < config.password_min_length:
        click.echo(
            click.style("Error: ", fg="red")
            + f"Password must be at least {config.password_min_length} characters"
        )
        sys.exit(1)

    users = UserStore(storage)
    user = users.get_by_email(email)
    if user is None:
        click.echo(click.style("Error: ", fg="red") + f"No user with email {email}")
        sys.exit(1)

    auth = AuthManager(
        bcrypt_rounds=config.bcrypt_rounds,
        session_store=SessionStore(config.sessions_file),
    )
    users.update_password(user.id, auth.hash_password(password))
    revoked = auth.invalidate_user_sessions(user.id)

    click.echo(click.style("Password updated", fg="green") + f" ({revoked} sessions signed out)")


@main.command("check")
@dir_option
def check(base_dir: Path | None):
    """Check site configuration and settings store health."""
    config = _load_config(base_dir)

    click.echo("blogdesk Configuration Check")
    click.echo("=" * 40)
    click.echo()

    click.echo("Directories:")
    exists = config.data_dir.exists()
    status = click.style("OK", fg="green") if exists else click.style("MISSING", fg="red")
    click.echo(f"  Data: {config.data_dir} [{status}]")
    click.echo()

    click.echo("Database:")
    if config.db_path.exists():
        click.echo(f"  {config.db_path} [" + click.style("OK", fg="green") + "]")

        storage = Storage(config.db_path)
        try:
            storage.load()
            click.echo("  Valid JSON: " + click.style("YES", fg="green"))
            grouped = SettingsService(SettingsStore(storage)).get_grouped()
            total = sum(len(values) for values in grouped.values())
            click.echo(f"  Settings: {total} in {len(grouped)} categories")
        except StorageError as e:
            click.echo("  Valid JSON: " + click.style(f"NO ({e})", fg="red"))
    else:
        click.echo(
            f"  {config.db_path} ["
            + click.style("NOT INITIALIZED", fg="yellow")
            + "]"
        )
    click.echo()

    click.echo("Cron:")
    if config.cron_secret:
        click.echo("  Secret: " + click.style("SET", fg="green"))
    else:
        click.echo("  Secret: " + click.style("NOT SET (cron endpoints disabled)", fg="yellow"))
    click.echo()


if __name__ == "__main__":
    main()
