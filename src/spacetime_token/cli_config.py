"""Structural editor for the spacetime CLI config document (cli.toml).

The document belongs to the spacetime CLI and may contain keys, comments,
and formatting this tool never interprets. It is therefore edited in place
through tomlkit rather than re-serialized from a model: only the keys this
tool touches change.

Keys of interest:
    spacetimedb_token = "..."     # active token (key name from settings)
    default_host = "local"        # raw address of the active profile
    default_server = "alice"      # nickname of the active registry row

    [[server_configs]]
    nickname = "alice"
    host = "127.0.0.1:3000"
    protocol = "http"
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.items import AoT, Array, Table
from tomlkit.toml_document import TOMLDocument

from spacetime_token.errors import ConfigDocumentError, ConfigNotFoundError

logger = logging.getLogger(__name__)

REGISTRY_KEY = "server_configs"


@dataclass(frozen=True)
class RegistryEntry:
    """Read-only view of one [[server_configs]] row."""

    nickname: str | None
    host: str | None
    protocol: str | None

    @classmethod
    def from_table(cls, table: Any) -> "RegistryEntry":
        nickname = table.get("nickname")
        host = table.get("host")
        protocol = table.get("protocol")
        return cls(
            nickname=str(nickname) if nickname is not None else None,
            host=str(host) if host is not None else None,
            protocol=str(protocol) if protocol is not None else None,
        )


class ConfigDocument:
    """A parsed cli.toml plus the path it is saved back to."""

    def __init__(self, path: Path, doc: TOMLDocument | None = None):
        self.path = Path(path)
        self.doc = doc if doc is not None else tomlkit.document()

    @staticmethod
    def exists(path: Path) -> bool:
        return Path(path).exists()

    @classmethod
    def load(cls, path: Path) -> "ConfigDocument":
        """Parse an existing document.

        Raises:
            ConfigNotFoundError: If the file does not exist
            ConfigDocumentError: If the file cannot be read or parsed
        """
        path = Path(path)
        if not path.exists():
            raise ConfigNotFoundError(f"{path.name} does not exist at {path}")
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigDocumentError(f"Failed to read {path.name} from {path}: {e}") from e
        try:
            doc = tomlkit.parse(content)
        except TOMLKitError as e:
            raise ConfigDocumentError(f"Failed to parse {path.name} from {path}: {e}") from e
        logger.debug(f"Loaded CLI config from: {path}")
        return cls(path, doc)

    @classmethod
    def load_or_init(cls, path: Path) -> "ConfigDocument":
        """Load the document, or start an empty one if it does not exist yet.

        The parent directory is created so a later save() succeeds.
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigDocumentError(f"Failed to create directory {path.parent}: {e}") from e
        if path.exists():
            return cls.load(path)
        logger.debug(f"No CLI config at {path}, starting an empty document")
        return cls(path)

    def save(self) -> None:
        """Write the document back, replacing the file atomically.

        The existing file mode is preserved; new files get 0600.

        Raises:
            ConfigDocumentError: If the write fails
        """
        content = tomlkit.dumps(self.doc)
        mode = (self.path.stat().st_mode & 0o777) if self.path.exists() else 0o600
        # A symlinked cli.toml (dotfiles) keeps its link; the target is replaced
        target = self.path.resolve()
        temp_path = target.with_suffix(".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(content, encoding="utf-8")
            os.chmod(temp_path, mode)
            temp_path.replace(target)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ConfigDocumentError(f"Failed to write {self.path.name} to {self.path}: {e}") from e
        logger.debug(f"Successfully updated {self.path.name}.")

    def has_key(self, key: str) -> bool:
        return key in self.doc

    def get_scalar(self, key: str) -> str | None:
        """Return a top-level string value, or None if the key is absent.

        Raises:
            ConfigDocumentError: If the key holds something other than a string
        """
        value = self.doc.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            raise ConfigDocumentError(f"Key '{key}' in {self.path.name} is not a string")
        return str(value)

    def set_scalar(self, key: str, value: str) -> None:
        self.doc[key] = value

    def _registry(self, create: bool = False) -> AoT | Array | None:
        if REGISTRY_KEY not in self.doc:
            if not create:
                return None
            self.doc[REGISTRY_KEY] = tomlkit.aot()
        registry = self.doc[REGISTRY_KEY]
        if not isinstance(registry, (AoT, Array)):
            raise ConfigDocumentError(
                f"'{REGISTRY_KEY}' in {self.path.name} is not an array of tables"
            )
        return registry

    @staticmethod
    def _rows(registry: AoT | Array) -> list[Any]:
        # Inline arrays may hold non-table values; those rows are not ours
        return [row for row in registry if isinstance(row, (Table, dict))]

    def registry_entries(self) -> list[RegistryEntry]:
        registry = self._registry()
        if registry is None:
            return []
        return [RegistryEntry.from_table(row) for row in self._rows(registry)]

    def find_registry_entry(self, nickname: str) -> RegistryEntry | None:
        """Return the first row whose nickname equals the given string exactly."""
        for entry in self.registry_entries():
            if entry.nickname == nickname:
                return entry
        return None

    def upsert_registry_entry(self, nickname: str, host: str, protocol: str) -> None:
        """Update the row with this nickname in place, or append a new row.

        Other fields in an existing row are left untouched.
        """
        registry = self._registry(create=True)
        for row in self._rows(registry):
            if row.get("nickname") == nickname:
                row["host"] = host
                row["protocol"] = protocol
                return

        if isinstance(registry, AoT):
            table = tomlkit.table()
        else:
            table = tomlkit.inline_table()
        table["nickname"] = nickname
        table["host"] = host
        table["protocol"] = protocol
        registry.append(table)

    def as_string(self) -> str:
        return tomlkit.dumps(self.doc)


__all__ = [
    "ConfigDocument",
    "REGISTRY_KEY",
    "RegistryEntry",
]
