"""Profile to CLI config synchronization.

This module is the only place that makes the spacetime CLI config document
consistent with the profile store. Sync is one-way (profile -> document),
except for capture_active_session(), which reads the document so the
current session can be saved as a new profile.

Rules:
- activate() writes the active token, default_host (the raw address, kept
  verbatim), default_server, and exactly one registry row for the profile.
- reconcile_registry() upserts a row for every stored profile. It never
  deletes rows: entries for unknown nicknames may be hand-written or owned
  by the spacetime CLI. Renaming a profile leaves the old row behind.
- apply_profile() always runs activate() before reconcile_registry().

Environment Filtering:
    An "environment" is the raw address string stored on a profile. Filters
    compare raw strings, so "local" and "http://127.0.0.1:3000" are separate
    environments even though both normalize to the same server target.
"""

import logging
from collections.abc import Callable, Sequence

from spacetime_token.address import normalize_server_target
from spacetime_token.cli_config import ConfigDocument
from spacetime_token.errors import (
    AmbiguousSelectionError,
    ConflictingAddressError,
    NoProfilesError,
    NotLoggedInError,
    SelectionCancelledError,
)
from spacetime_token.profile_store import Profile, ProfileStore

logger = logging.getLogger(__name__)

DEFAULT_HOST_KEY = "default_host"
DEFAULT_SERVER_KEY = "default_server"

# Receives the sorted candidate names, returns the chosen one or None on cancel
Chooser = Callable[[list[str]], str | None]


def activate(doc: ConfigDocument, profile_name: str, profile: Profile, token_key: str) -> None:
    """Make a profile the active session in the document."""
    target = normalize_server_target(profile.address)
    doc.set_scalar(token_key, profile.token)
    doc.set_scalar(DEFAULT_HOST_KEY, profile.address)
    doc.set_scalar(DEFAULT_SERVER_KEY, profile_name)
    doc.upsert_registry_entry(profile_name, target.host, target.protocol)
    logger.debug(f"Activated '{profile_name}' -> {target.to_url()}")


def reconcile_registry(doc: ConfigDocument, store: ProfileStore) -> None:
    """Upsert a registry row for every stored profile. Never removes rows."""
    for name, profile in store.items():
        target = normalize_server_target(profile.address)
        doc.upsert_registry_entry(name, target.host, target.protocol)
    logger.debug(f"Reconciled {len(store)} registry rows")


def apply_profile(
    doc: ConfigDocument,
    profile_name: str,
    profile: Profile,
    store: ProfileStore,
    token_key: str,
) -> None:
    """Activate a profile, then sweep the whole store into the registry."""
    activate(doc, profile_name, profile, token_key)
    reconcile_registry(doc, store)


def current_environment(doc: ConfigDocument | None) -> str | None:
    """Return the raw default_host of the document, if any."""
    if doc is None:
        return None
    return doc.get_scalar(DEFAULT_HOST_KEY)


def filter_by_address(store: ProfileStore, address: str | None) -> list[tuple[str, Profile]]:
    """Return name-sorted profiles whose raw address equals the filter.

    A None filter returns every profile.
    """
    if address is None:
        return store.items()
    return [(name, profile) for name, profile in store.items() if profile.address == address]


def check_address(name: str, profile: Profile, address: str | None) -> None:
    """Ensure an explicitly chosen profile belongs to the requested environment.

    Raises:
        ConflictingAddressError: If address is given and differs from the profile's
    """
    if address is not None and profile.address != address:
        raise ConflictingAddressError(name, profile.address, address)


def select_profile(
    candidates: Sequence[tuple[str, Profile]],
    *,
    chooser: Chooser | None = None,
    environment: str | None = None,
) -> tuple[str, Profile]:
    """Pick one profile from a filtered candidate list.

    A single candidate is returned directly. With several candidates the
    chooser decides; without one (non-interactive use) the selection is
    ambiguous and nothing is picked.

    Args:
        candidates: (name, profile) pairs, already filtered
        chooser: Interactive picker, or None when no prompt is possible
        environment: Filter that produced the candidates (for messages)

    Returns:
        The chosen (name, profile) pair

    Raises:
        NoProfilesError: If there are no candidates
        AmbiguousSelectionError: If several match and chooser is None
        SelectionCancelledError: If the chooser returns None
    """
    ordered = sorted(candidates, key=lambda item: item[0])
    if not ordered:
        scope = f" for environment '{environment}'" if environment is not None else ""
        raise NoProfilesError(f"No profiles found{scope}. Create one before switching.")

    if len(ordered) == 1:
        return ordered[0]

    names = [name for name, _ in ordered]
    if chooser is None:
        raise AmbiguousSelectionError(names, environment)

    chosen = chooser(names)
    if chosen is None:
        raise SelectionCancelledError("No profile selected or selection cancelled.")
    for name, profile in ordered:
        if name == chosen:
            return name, profile
    raise SelectionCancelledError(f"Selected profile '{chosen}' is not one of the candidates.")


def capture_active_session(doc: ConfigDocument, token_key: str) -> Profile:
    """Build a Profile from the document's active token and default_host.

    Raises:
        NotLoggedInError: If the token or default_host is missing
    """
    token = doc.get_scalar(token_key)
    if token is None or not token.strip():
        raise NotLoggedInError(
            f"User is not logged in. Token key '{token_key}' not found in {doc.path.name}."
        )
    host = doc.get_scalar(DEFAULT_HOST_KEY)
    if host is None:
        raise NotLoggedInError(
            f"'{DEFAULT_HOST_KEY}' not found in {doc.path.name}. Cannot save profile."
        )
    return Profile(token=token, address=host)


def retarget_active_session(
    doc: ConfigDocument,
    profile_name: str,
    profile: Profile,
    previous_address: str,
    store: ProfileStore,
    token_key: str,
) -> bool:
    """Follow an address change of the profile that is currently active.

    The document is considered to belong to the profile when its active
    token equals the profile's token, or its default_host equals the
    profile's previous address.

    Returns:
        True if the document was updated, False if it was left alone
    """
    token_matches = doc.get_scalar(token_key) == profile.token
    host_matches = doc.get_scalar(DEFAULT_HOST_KEY) == previous_address
    if not (token_matches or host_matches):
        logger.debug(f"Active session does not belong to '{profile_name}', leaving it alone")
        return False

    target = normalize_server_target(profile.address)
    doc.set_scalar(DEFAULT_HOST_KEY, profile.address)
    doc.set_scalar(DEFAULT_SERVER_KEY, profile_name)
    doc.upsert_registry_entry(profile_name, target.host, target.protocol)
    reconcile_registry(doc, store)
    return True


__all__ = [
    "Chooser",
    "DEFAULT_HOST_KEY",
    "DEFAULT_SERVER_KEY",
    "activate",
    "apply_profile",
    "capture_active_session",
    "check_address",
    "current_environment",
    "filter_by_address",
    "reconcile_registry",
    "retarget_active_session",
    "select_profile",
]
