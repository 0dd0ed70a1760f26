"""Profile store: named token + address pairs.

Profiles are stored in a single TOML file in the app directory, one table per
profile name:

    [alice]
    token = "eyJhbGciOi..."
    address = "local"

    [prod]
    token = "eyJ0eXAiOi..."
    address = "https://maincloud.example/spacetime"

Legacy Format:
    Older releases stored a flat mapping of name to token with no address:

        alice = "eyJhbGciOi..."

    Such files are detected structurally (every value is a string), upgraded
    in memory with address "local", and written back once. A file that
    matches neither shape is reported as corrupt and never rewritten.

Security:
- Store file written with 0600 permissions (tokens are bearer secrets)
- Whole-file rewrite through a temp file and atomic rename
- Tokens are not encrypted; filesystem permissions are the only protection
"""

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli
import tomli_w

from spacetime_token.address import LOCAL_ALIAS
from spacetime_token.errors import CorruptStoreError, ProfileStoreError

logger = logging.getLogger(__name__)


def mask_token(token: str) -> str:
    """Mask a token for display, keeping the first and last five characters.

    Tokens of ten characters or fewer are too short to mask meaningfully and
    are returned unchanged.
    """
    if len(token) <= 10:
        return token
    return f"{token[:5]}...{token[-5:]}"


@dataclass
class Profile:
    """A stored login session.

    Attributes:
        token: Bearer token for the spacetime CLI (never empty)
        address: Raw server address as entered ("local", host, or URL)
    """

    token: str
    address: str = LOCAL_ALIAS

    def __post_init__(self):
        if not isinstance(self.token, str) or not self.token.strip():
            raise ProfileStoreError("Profile token cannot be empty")
        if not isinstance(self.address, str):
            raise ProfileStoreError("Profile address must be a string")

    def to_dict(self) -> dict[str, str]:
        return {"token": self.token, "address": self.address}


@dataclass
class ProfileStore:
    """In-memory mapping of profile name to Profile.

    A plain container: callers decide whether writes may overwrite. Names are
    case-sensitive. Iteration helpers always yield names in sorted order so
    output is deterministic.
    """

    profiles: dict[str, Profile] = field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return name in self.profiles

    def __len__(self) -> int:
        return len(self.profiles)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def get(self, name: str) -> Profile | None:
        return self.profiles.get(name)

    def set(self, name: str, profile: Profile) -> None:
        self.profiles[name] = profile

    def remove(self, name: str) -> bool:
        """Remove a profile. Returns False if it did not exist."""
        return self.profiles.pop(name, None) is not None

    def clear(self) -> None:
        self.profiles.clear()

    def names(self) -> list[str]:
        return sorted(self.profiles)

    def items(self) -> list[tuple[str, Profile]]:
        return [(name, self.profiles[name]) for name in self.names()]

    def find_by_token(self, token: str) -> tuple[str, Profile] | None:
        """Return the first profile (by name) holding the given token."""
        for name, profile in self.items():
            if profile.token == token:
                return name, profile
        return None

    def environments(self) -> dict[str, list[str]]:
        """Group profile names by raw address, both sorted."""
        groups: dict[str, list[str]] = {}
        for name, profile in self.items():
            groups.setdefault(profile.address, []).append(name)
        return dict(sorted(groups.items()))

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {name: profile.to_dict() for name, profile in self.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProfileStore":
        """Parse the current schema.

        Raises:
            ProfileStoreError: If any entry is not a {token, address} table
        """
        profiles: dict[str, Profile] = {}
        for name, entry in data.items():
            if not isinstance(entry, dict):
                raise ProfileStoreError(f"Profile '{name}' is not a table")
            for key in ("token", "address"):
                if key not in entry:
                    raise ProfileStoreError(f"Profile '{name}' missing required field: {key}")
            profiles[name] = Profile(token=entry["token"], address=entry["address"])
        return cls(profiles=profiles)

    @classmethod
    def from_legacy_dict(cls, data: dict[str, Any]) -> "ProfileStore":
        """Parse the legacy name -> token schema, defaulting every address to "local".

        Raises:
            ProfileStoreError: If any value is not a string token
        """
        profiles: dict[str, Profile] = {}
        for name, token in data.items():
            if not isinstance(token, str):
                raise ProfileStoreError(f"Legacy profile '{name}' is not a token string")
            profiles[name] = Profile(token=token, address=LOCAL_ALIAS)
        return cls(profiles=profiles)


class ProfileStoreManager:
    """Load and persist the profile store file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _create_empty(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("")
            os.chmod(self.path, 0o600)
        except OSError as e:
            raise ProfileStoreError(f"Failed to create empty profiles file at {self.path}: {e}") from e
        logger.info(f"Created empty {self.path.name}.")

    def load(self) -> ProfileStore:
        """Load profiles, migrating the legacy schema if necessary.

        Returns:
            ProfileStore (empty if the file is missing or blank)

        Raises:
            CorruptStoreError: If the file matches neither schema
            ProfileStoreError: If the file cannot be read, or a migrated store cannot be saved
        """
        if not self.path.exists():
            self._create_empty()
            return ProfileStore()

        try:
            with open(self.path, "rb") as f:
                data = tomli.load(f)
        except OSError as e:
            raise ProfileStoreError(f"Failed to read profiles file at {self.path}: {e}") from e
        except (tomli.TOMLDecodeError, UnicodeDecodeError) as e:
            raise CorruptStoreError(self.path, str(e), str(e)) from e

        if not data:
            return ProfileStore()

        try:
            store = ProfileStore.from_dict(data)
            logger.debug(f"Loaded {len(store)} profiles from: {self.path}")
            return store
        except ProfileStoreError as current_error:
            logger.warning(
                "Could not parse profiles file. "
                "Assuming old format and attempting migration..."
            )
            try:
                store = ProfileStore.from_legacy_dict(data)
            except ProfileStoreError as legacy_error:
                raise CorruptStoreError(
                    self.path, str(current_error), str(legacy_error)
                ) from current_error

        try:
            self.save(store)
        except ProfileStoreError as e:
            raise ProfileStoreError(f"Failed to save migrated profiles file: {e}") from e
        logger.warning("Successfully migrated profiles to new format.")
        return store

    def save(self, store: ProfileStore) -> None:
        """Write the whole store, replacing the file atomically.

        Raises:
            ProfileStoreError: If serialization or the write fails
        """
        try:
            content = tomli_w.dumps(store.to_dict())
        except (TypeError, ValueError) as e:
            raise ProfileStoreError(f"Failed to serialize profiles data to TOML: {e}") from e

        # Write through a symlinked store to its target
        target = self.path.resolve()
        temp_path = target.with_suffix(".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(content, encoding="utf-8")
            os.chmod(temp_path, 0o600)
            temp_path.replace(target)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ProfileStoreError(f"Failed to write profiles file at {self.path}: {e}") from e

        logger.debug(f"Successfully updated {self.path.name}.")

    def reset(self) -> None:
        """Remove every profile from the store file."""
        self.save(ProfileStore())


__all__ = [
    "Profile",
    "ProfileStore",
    "ProfileStoreManager",
    "mask_token",
]
