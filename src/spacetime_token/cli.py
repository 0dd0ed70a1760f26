"""CLI entry point for spacetime-token.

Commands:
    spacetime-token set <name> <token>       # Save/update a profile and activate it
    spacetime-token save <name>              # Save the active session as a profile
    spacetime-token create <name>            # Log in via the spacetime CLI and save
    spacetime-token list [--env]             # List stored profiles
    spacetime-token delete <name>            # Delete a profile
    spacetime-token reset                    # Delete all profiles
    spacetime-token switch [<name>]          # Activate a stored profile
    spacetime-token current                  # Show the active profile
    spacetime-token admin                    # Activate the 'admin' profile
    spacetime-token env [current|list|use]   # Inspect or switch environments
    spacetime-token set-address <name> <addr>
    spacetime-token setup                    # Edit spacetime-token settings

Every command follows the same order when it touches both stores: the
profile store is saved first, then the spacetime CLI config document.
"""

import functools
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from spacetime_token import __version__, spacetime_cli, sync
from spacetime_token.address import LOCAL_ALIAS
from spacetime_token.cli_config import ConfigDocument
from spacetime_token.click_group import TokenGroup
from spacetime_token.errors import (
    AlreadyExistsError,
    ConfigDocumentError,
    ConfigNotFoundError,
    NotLoggedInError,
    ProfileNotFoundError,
    SettingsError,
    SpacetimeTokenError,
)
from spacetime_token.identity import fetch_server_issued_token
from spacetime_token.profile_store import (
    Profile,
    ProfileStore,
    ProfileStoreManager,
    mask_token,
)
from spacetime_token.settings import APP_DIR_ENV_VAR, AppSettings, SettingsManager, resolve_app_dir

logger = logging.getLogger(__name__)
console = Console()

ADMIN_PROFILE = "admin"


@dataclass
class AppState:
    """Per-invocation state handed to every command through ctx.obj."""

    settings_manager: SettingsManager
    interactive: bool = True
    _settings: AppSettings | None = field(default=None, repr=False)

    @property
    def settings(self) -> AppSettings:
        """Settings, loaded on first use and read-only afterwards."""
        if self._settings is None:
            self._settings = self.settings_manager.load()
        return self._settings

    @property
    def profiles(self) -> ProfileStoreManager:
        return ProfileStoreManager(self.settings.profiles_path)

    @property
    def cli_config_path(self):
        return self.settings.cli_config_path()


def _is_interactive() -> bool:
    return sys.stdin.isatty()


def _prompt_choice(names: list[str], message: str) -> str | None:
    """Show a numbered menu and return the chosen name, or None if cancelled."""
    click.echo()
    click.echo("─" * 60)
    for i, name in enumerate(names, 1):
        click.echo(f"{i:2}. {name}")
    click.echo("─" * 60)

    while True:
        try:
            selection = click.prompt(message, type=int, default=1)
        except click.Abort:
            click.echo("\nCancelled.")
            return None
        if 1 <= selection <= len(names):
            return names[selection - 1]
        click.echo(f"Invalid selection. Please choose 1-{len(names)}", err=True)


def _chooser(state: AppState, message: str) -> sync.Chooser | None:
    if not state.interactive:
        return None
    return functools.partial(_prompt_choice, message=message)


def handle_errors(action: str) -> Callable:
    """Report SpacetimeTokenError as a one-line error and exit with its code."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except (click.ClickException, click.Abort, click.exceptions.Exit):
                raise
            except SpacetimeTokenError as e:
                console.print(f"[red]Error:[/red] {escape(str(e))}")
                sys.exit(e.exit_code)
            except Exception as e:
                console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
                logger.error(f"Failed to {action}: {e}", exc_info=True)
                sys.exit(1)

        return wrapper

    return decorator


def _load_document_if_present(state: AppState) -> ConfigDocument | None:
    path = state.cli_config_path
    if not ConfigDocument.exists(path):
        return None
    return ConfigDocument.load(path)


def _activate(state: AppState, name: str, profile: Profile, store: ProfileStore) -> None:
    """Write the profile into the CLI config document as the active session."""
    doc = ConfigDocument.load_or_init(state.cli_config_path)
    sync.apply_profile(doc, name, profile, store, state.settings.cli_token_key)
    doc.save()


def _require_profile(store: ProfileStore, name: str) -> Profile:
    profile = store.get(name)
    if profile is None:
        raise ProfileNotFoundError(name, store.names())
    return profile


@click.group(
    cls=TokenGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)
@click.option(
    "--app-dir",
    envvar=APP_DIR_ENV_VAR,
    type=click.Path(file_okay=False),
    help="Directory holding config.toml and the profile store",
)
@click.option("--no-input", is_flag=True, help="Never prompt; fail on ambiguous selections")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, app_dir: str | None, no_input: bool, verbose: bool) -> None:
    """spacetime-token - manage SpacetimeDB tokens via profiles.

    Profiles pair a token with a server address. Activating a profile writes
    its token and address into the spacetime CLI config (cli.toml) and keeps
    the [[server_configs]] entries in sync with your stored profiles.

    \b
    PROFILE COMMANDS:
        set           Save/update a profile with a token and activate it
        save          Save the active session as a new profile
        create        Create a profile via 'spacetime login'
        list          List stored profiles
        delete        Delete a profile
        reset         Delete all profiles
        set-address   Change the address of a profile

    \b
    SESSION COMMANDS:
        switch        Activate a stored profile
        current       Show the active profile
        admin         Activate the 'admin' profile
        env           Show, list, or switch environments (server addresses)

    \b
    CONFIGURATION:
        setup         Edit spacetime-token settings interactively
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")

    ctx.obj = AppState(
        settings_manager=SettingsManager(resolve_app_dir(app_dir)),
        interactive=not no_input and _is_interactive(),
    )

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)


@main.command(name="set")
@click.argument("profile_name")
@click.argument("token")
@click.option("--address", help="Server address, e.g. 'local' or 'https://host/spacetime'")
@click.pass_obj
@handle_errors("set profile")
def set_profile(state: AppState, profile_name: str, token: str, address: str | None):
    """Save/update a profile with a token and set it active.

    Without --address the current environment (default_host in cli.toml) is
    used, falling back to 'local'.
    """
    settings = state.settings
    manager = state.profiles
    store = manager.load()

    if address is None:
        try:
            address = sync.current_environment(_load_document_if_present(state))
        except ConfigDocumentError as e:
            logger.debug(f"Ignoring unreadable CLI config: {e}")
            address = None
        address = address or LOCAL_ALIAS

    profile = Profile(token=token, address=address)
    store.set(profile_name, profile)
    manager.save(store)
    console.print(
        f"Profile '{escape(profile_name)}' saved/updated in {settings.profiles_filename}."
    )

    _activate(state, profile_name, profile, store)
    console.print(
        f"Profile '{escape(profile_name)}' also set as active in {settings.cli_config_filename}."
    )


@main.command(name="save")
@click.argument("profile_name")
@click.pass_obj
@handle_errors("save profile")
def save_profile(state: AppState, profile_name: str):
    """Save the current active session from cli.toml as a new profile."""
    settings = state.settings
    path = state.cli_config_path
    if not ConfigDocument.exists(path):
        raise ConfigNotFoundError(
            f"{settings.cli_config_filename} does not exist. Cannot save token."
        )
    doc = ConfigDocument.load(path)

    manager = state.profiles
    store = manager.load()
    if profile_name in store:
        raise AlreadyExistsError(
            f"Profile '{profile_name}' already exists in {settings.profiles_filename}. "
            "Use a different name or delete the existing one first."
        )

    profile = sync.capture_active_session(doc, settings.cli_token_key)
    store.set(profile_name, profile)
    manager.save(store)
    console.print(
        f"Saved current active session as profile '{escape(profile_name)}' "
        f"in {settings.profiles_filename}."
    )


@main.command(name="reset")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
@click.pass_obj
@handle_errors("reset profiles")
def reset_profiles(state: AppState, force: bool):
    """Reset (clear) the profile store."""
    settings = state.settings
    if not force and not click.confirm(
        f"Are you sure you want to reset {settings.profiles_filename}? "
        "This will delete all profiles.",
        default=False,
    ):
        console.print("Reset cancelled.")
        return

    state.profiles.reset()
    console.print(f"{settings.profiles_filename} has been reset.")


@main.command(name="create")
@click.argument("profile_name")
@click.option("--address", default=LOCAL_ALIAS, show_default=True, help="Server address")
@click.pass_obj
@handle_errors("create profile")
def create_profile(state: AppState, profile_name: str, address: str):
    """Create a new profile with a fresh login and set it active.

    For 'local' the spacetime CLI performs a server-issued login and the
    token is read back from cli.toml. For any other address a token is
    requested directly from the server's identity endpoint.
    """
    settings = state.settings
    manager = state.profiles
    store = manager.load()
    if profile_name in store:
        raise AlreadyExistsError(
            f"Profile '{profile_name}' already exists in {settings.profiles_filename}. "
            "Cannot create."
        )

    spacetime_cli.logout(command=settings.spacetime_command)

    if address == LOCAL_ALIAS:
        console.print(
            f"Please follow the prompts from "
            f"'{settings.spacetime_command} login --server-issued-login {escape(address)}'"
        )
        spacetime_cli.server_issued_login(address, command=settings.spacetime_command)

        path = state.cli_config_path
        if not ConfigDocument.exists(path):
            raise ConfigNotFoundError(
                f"{settings.cli_config_filename} does not exist after login. Cannot save token."
            )
        token = ConfigDocument.load(path).get_scalar(settings.cli_token_key)
        if not token:
            raise NotLoggedInError(
                f"Token key '{settings.cli_token_key}' not found in "
                f"{settings.cli_config_filename} after login."
            )
    else:
        token = fetch_server_issued_token(address, timeout=settings.identity_timeout)

    profile = Profile(token=token, address=address)
    store.set(profile_name, profile)
    manager.save(store)

    _activate(state, profile_name, profile, store)
    console.print(
        f"[green]Successfully created and saved profile '{escape(profile_name)}' "
        f"in {settings.profiles_filename}.[/green]"
    )


@main.command(name="list")
@click.option("--env", "env_only", is_flag=True, help="Only show profiles for the current environment")
@click.pass_obj
@handle_errors("list profiles")
def list_profiles(state: AppState, env_only: bool):
    """List all stored profiles.

    The profile whose token is active in cli.toml is marked as current.
    """
    settings = state.settings
    store = state.profiles.load()

    active_token = None
    try:
        doc = _load_document_if_present(state)
        if doc is not None:
            active_token = doc.get_scalar(settings.cli_token_key)
    except ConfigDocumentError as e:
        logger.debug(f"Could not read active token: {e}")

    current_env = None
    if env_only:
        current_env = sync.current_environment(_load_document_if_present(state))
        if current_env is not None:
            console.print(f"Current environment: {escape(current_env)}")

    profiles = sync.filter_by_address(store, current_env)
    if not profiles:
        console.print(f"[yellow]No profiles found in {settings.profiles_filename}.[/yellow]")
        return

    table = Table(title=f"Available profiles in {settings.profiles_filename}")
    table.add_column("Current", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Address", style="blue")

    for name, profile in profiles:
        marker = "*" if active_token is not None and profile.token == active_token else ""
        table.add_row(marker, escape(name), escape(profile.address))

    console.print(table)


@main.command(name="current")
@click.pass_obj
@handle_errors("show current profile")
def show_current(state: AppState):
    """Display the active profile name and its token (masked)."""
    settings = state.settings
    doc = _load_document_if_present(state)
    if doc is None:
        console.print(
            f"[yellow]{settings.cli_config_filename} not found. No active token set.[/yellow]"
        )
        return

    try:
        active_token = doc.get_scalar(settings.cli_token_key)
    except ConfigDocumentError:
        console.print(
            f"[yellow]Active token key '{settings.cli_token_key}' in "
            f"{settings.cli_config_filename} is not a string.[/yellow]"
        )
        return
    if active_token is None:
        console.print(
            f"[yellow]No active token (key '{settings.cli_token_key}') found in "
            f"{settings.cli_config_filename}.[/yellow]"
        )
        return

    match = state.profiles.load().find_by_token(active_token)
    if match is not None:
        name, profile = match
        console.print(f"[green]Current active profile:[/green] {escape(name)}")
        console.print(f"  Address: {escape(profile.address)}")
    else:
        console.print(
            "Current active token is set, but not found under any profile name "
            f"in {settings.profiles_filename}."
        )
    console.print(f"  Active token: {escape(mask_token(active_token))}")


@main.command(name="delete")
@click.argument("profile_name")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
@click.pass_obj
@handle_errors("delete profile")
def delete_profile(state: AppState, profile_name: str, force: bool):
    """Delete a stored profile.

    The matching [[server_configs]] entry in cli.toml is left in place.
    """
    settings = state.settings
    manager = state.profiles
    store = manager.load()
    _require_profile(store, profile_name)

    if not force and not click.confirm(
        f"Are you sure you want to delete the profile '{profile_name}'?", default=False
    ):
        console.print("Deletion cancelled.")
        return

    store.remove(profile_name)
    manager.save(store)
    console.print(
        f"[green]Profile '{escape(profile_name)}' deleted from {settings.profiles_filename}.[/green]"
    )


@main.command(name="switch")
@click.argument("profile_name", required=False)
@click.option("--address", help="Only consider profiles with this exact address")
@click.pass_obj
@handle_errors("switch profile")
def switch_profile(state: AppState, profile_name: str | None, address: str | None):
    """Switch the active token to a stored profile.

    Without a name, pick from all profiles (or those matching --address).
    With several matches and no terminal to prompt on, the command fails
    rather than guessing.
    """
    settings = state.settings
    store = state.profiles.load()

    if profile_name is not None:
        profile = _require_profile(store, profile_name)
        sync.check_address(profile_name, profile, address)
    else:
        if address is not None:
            console.print(f"Environment filter: {escape(address)}")
        profile_name, profile = sync.select_profile(
            sync.filter_by_address(store, address),
            chooser=_chooser(state, "Select a profile to switch to"),
            environment=address,
        )

    _activate(state, profile_name, profile, store)
    console.print(
        f"[green]Switched active profile to '{escape(profile_name)}'[/green] "
        f"(from {settings.profiles_filename}) in {settings.cli_config_filename}."
    )


@main.command(name="admin")
@click.pass_obj
@handle_errors("switch to admin profile")
def switch_admin(state: AppState):
    """Switch to the profile named 'admin'."""
    settings = state.settings
    store = state.profiles.load()
    profile = store.get(ADMIN_PROFILE)
    if profile is None:
        raise ProfileNotFoundError(ADMIN_PROFILE)

    _activate(state, ADMIN_PROFILE, profile, store)
    console.print(
        f"[green]Switched active profile to ADMIN '{ADMIN_PROFILE}'[/green] "
        f"(from {settings.profiles_filename}) in {settings.cli_config_filename}."
    )


@main.group(name="env", invoke_without_command=True)
@click.pass_context
def env_group(ctx: click.Context):
    """Manage or inspect environments (server addresses).

    An environment is the address string stored on a profile. Without a
    subcommand, shows the current environment.

    \b
    EXAMPLES:
        $ spacetime-token env
        $ spacetime-token env list
        $ spacetime-token env use https://maincloud.example/spacetime
        $ spacetime-token env use local --profile alice
    """
    if ctx.invoked_subcommand is None:
        ctx.invoke(env_current)


@env_group.command(name="current")
@click.pass_obj
@handle_errors("get current environment")
def env_current(state: AppState):
    """Show the current environment from cli.toml."""
    env = sync.current_environment(_load_document_if_present(state))
    if env is None:
        console.print("Environment not set.")
    else:
        console.print(f"Current environment: {escape(env)}")


@env_group.command(name="list")
@click.pass_obj
@handle_errors("list environments")
def env_list(state: AppState):
    """List known environments from saved profiles."""
    settings = state.settings
    environments = state.profiles.load().environments()
    if not environments:
        console.print(
            f"[yellow]No environments found. Add profiles to {settings.profiles_filename} first.[/yellow]"
        )
        return

    current_env = sync.current_environment(_load_document_if_present(state))
    console.print("Known environments:")
    for env, names in environments.items():
        current_tag = " (current)" if env == current_env else ""
        profile_list = escape(f"[profiles: {', '.join(names)}]")
        console.print(f"- {escape(env)}{current_tag} {profile_list}")


@env_group.command(name="use")
@click.argument("address")
@click.option("--profile", "-p", "profile_name", help="Profile to activate in this environment")
@click.pass_obj
@handle_errors("switch environment")
def env_use(state: AppState, address: str, profile_name: str | None):
    """Set the active environment and switch to a matching profile."""
    store = state.profiles.load()

    if profile_name is not None:
        profile = _require_profile(store, profile_name)
        sync.check_address(profile_name, profile, address)
    else:
        profile_name, profile = sync.select_profile(
            sync.filter_by_address(store, address),
            chooser=_chooser(state, "Select a profile for this environment"),
            environment=address,
        )

    _activate(state, profile_name, profile, store)
    console.print(
        f"[green]Environment set to '{escape(profile.address)}' "
        f"and switched to profile '{escape(profile_name)}'.[/green]"
    )


@main.command(name="set-address")
@click.argument("profile_name")
@click.argument("address")
@click.pass_obj
@handle_errors("set profile address")
def set_address(state: AppState, profile_name: str, address: str):
    """Update the address of an existing profile.

    If the profile is the active session in cli.toml, default_host and its
    [[server_configs]] entry follow the change.
    """
    settings = state.settings
    manager = state.profiles
    store = manager.load()
    profile = _require_profile(store, profile_name)

    previous_address = profile.address
    profile.address = address
    manager.save(store)
    console.print(
        f"Updated address for profile '{escape(profile_name)}' to '{escape(address)}'."
    )

    doc = _load_document_if_present(state)
    if doc is None:
        return
    if sync.retarget_active_session(
        doc, profile_name, profile, previous_address, store, settings.cli_token_key
    ):
        doc.save()
        console.print(
            f"Updated default_host in {settings.cli_config_filename} to '{escape(address)}'."
        )


@main.command(name="setup")
@click.pass_obj
@handle_errors("save settings")
def setup(state: AppState):
    """Interactive setup for spacetime-token settings.

    Press Enter at a prompt to keep the current value.
    """
    manager = state.settings_manager
    try:
        current = manager.load()
    except SettingsError as e:
        console.print(
            f"[yellow]Warning:[/yellow] Could not load existing settings ({escape(str(e))}). "
            "Using defaults."
        )
        current = AppSettings(app_dir=manager.app_dir)

    console.print("Current configuration (press Enter to keep current value):")
    current.profiles_filename = click.prompt("Profiles filename", default=current.profiles_filename)
    current.cli_config_dir_from_home = click.prompt(
        "SpacetimeDB CLI config directory (from home)", default=current.cli_config_dir_from_home
    )
    current.cli_config_filename = click.prompt(
        "SpacetimeDB CLI config filename", default=current.cli_config_filename
    )
    current.cli_token_key = click.prompt("SpacetimeDB CLI token key", default=current.cli_token_key)

    path = manager.save(current)
    console.print(f"[green]Configuration saved to {path}[/green]")


if __name__ == "__main__":
    main()
