"""Unit tests for profile_store module."""

import os
from unittest.mock import patch

import pytest
import tomli

from spacetime_token.errors import CorruptStoreError, ProfileStoreError
from spacetime_token.profile_store import (
    Profile,
    ProfileStore,
    ProfileStoreManager,
    mask_token,
)


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "app" / "profiles.toml"


@pytest.fixture
def manager(store_path):
    return ProfileStoreManager(store_path)


class TestMaskToken:
    """Tests for token masking."""

    def test_long_token_masked(self):
        """Test long tokens keep first and last five characters."""
        assert mask_token("abcdefghijklmnop") == "abcde...lmnop"

    def test_short_token_unchanged(self):
        """Test tokens of ten characters or fewer are not masked."""
        assert mask_token("0123456789") == "0123456789"
        assert mask_token("abc") == "abc"


class TestProfile:
    """Tests for Profile dataclass."""

    def test_defaults_to_local(self):
        """Test address defaults to 'local'."""
        assert Profile(token="tok").address == "local"

    def test_empty_token_rejected(self):
        """Test empty token is invalid."""
        with pytest.raises(ProfileStoreError, match="token cannot be empty"):
            Profile(token="")

    def test_whitespace_token_rejected(self):
        """Test whitespace-only token is invalid."""
        with pytest.raises(ProfileStoreError, match="token cannot be empty"):
            Profile(token="   ")

    def test_non_string_address_rejected(self):
        """Test address must be a string."""
        with pytest.raises(ProfileStoreError, match="address must be a string"):
            Profile(token="tok", address=3000)


class TestProfileStore:
    """Tests for the in-memory mapping."""

    def test_set_overwrites(self):
        """Test set replaces an existing profile without complaint."""
        store = ProfileStore()
        store.set("a", Profile("one"))
        store.set("a", Profile("two"))
        assert store.get("a").token == "two"
        assert len(store) == 1

    def test_names_are_sorted_and_case_sensitive(self):
        """Test iteration order and case sensitivity."""
        store = ProfileStore()
        for name in ["beta", "Alpha", "alpha"]:
            store.set(name, Profile(f"tok-{name}"))
        assert store.names() == ["Alpha", "alpha", "beta"]
        assert list(store) == ["Alpha", "alpha", "beta"]
        assert "ALPHA" not in store

    def test_remove(self):
        """Test remove reports whether a profile existed."""
        store = ProfileStore({"a": Profile("tok")})
        assert store.remove("a") is True
        assert store.remove("a") is False

    def test_find_by_token(self):
        """Test lookup by token returns the first name in sorted order."""
        store = ProfileStore({"b": Profile("same"), "a": Profile("same"), "c": Profile("other")})
        assert store.find_by_token("same")[0] == "a"
        assert store.find_by_token("missing") is None

    def test_environments(self):
        """Test grouping by raw address."""
        store = ProfileStore(
            {
                "p2": Profile("b", "https://x.example/spacetime"),
                "p1": Profile("a", "local"),
                "p3": Profile("c", "local"),
                "p4": Profile("d", "http://127.0.0.1:3000"),
            }
        )
        assert store.environments() == {
            "http://127.0.0.1:3000": ["p4"],
            "https://x.example/spacetime": ["p2"],
            "local": ["p1", "p3"],
        }

    def test_from_dict_missing_address(self):
        """Test current schema requires both fields."""
        with pytest.raises(ProfileStoreError, match="missing required field: address"):
            ProfileStore.from_dict({"a": {"token": "tok"}})

    def test_from_legacy_dict(self):
        """Test legacy entries get address 'local'."""
        store = ProfileStore.from_legacy_dict({"alice": "tok123"})
        assert store.get("alice") == Profile(token="tok123", address="local")


class TestProfileStoreManagerLoad:
    """Tests for loading the store file."""

    def test_missing_file_created_empty(self, manager, store_path):
        """Test a missing store is created empty."""
        store = manager.load()
        assert len(store) == 0
        assert store_path.exists()
        assert store_path.read_text() == ""

    def test_blank_file(self, manager, store_path):
        """Test a whitespace-only file is an empty store."""
        store_path.parent.mkdir(parents=True)
        store_path.write_text("\n   \n")
        assert len(manager.load()) == 0

    def test_round_trip(self, manager):
        """Test save then load reproduces the mapping."""
        original = ProfileStore(
            {
                "p1": Profile("a", "local"),
                "p2": Profile("b", "https://x.example/spacetime"),
                "with space": Profile("c", "host.example"),
            }
        )
        manager.save(original)
        assert manager.load() == original

    def test_current_schema_not_rewritten(self, manager, store_path):
        """Test loading a current-format file does not touch it."""
        store_path.parent.mkdir(parents=True)
        content = '# mine\n[alice]\ntoken = "tok"\naddress = "local"\n'
        store_path.write_text(content)
        store = manager.load()
        assert store.get("alice") == Profile("tok", "local")
        assert store_path.read_text() == content

    def test_legacy_migration(self, manager, store_path):
        """Test the flat legacy schema is upgraded and persisted."""
        store_path.parent.mkdir(parents=True)
        store_path.write_text('alice = "tok123"\n')

        store = manager.load()

        assert store.profiles == {"alice": Profile(token="tok123", address="local")}
        on_disk = tomli.loads(store_path.read_text())
        assert on_disk == {"alice": {"token": "tok123", "address": "local"}}

    def test_legacy_migration_happens_once(self, manager, store_path):
        """Test a migrated file loads as the current schema afterwards."""
        store_path.parent.mkdir(parents=True)
        store_path.write_text('alice = "tok123"\n')
        manager.load()

        with patch.object(ProfileStoreManager, "save") as mock_save:
            manager.load()
        mock_save.assert_not_called()

    def test_mixed_schema_is_corrupt(self, manager, store_path):
        """Test a file matching neither schema raises and is left untouched."""
        store_path.parent.mkdir(parents=True)
        content = 'alice = "tok"\n[bob]\ntoken = "t2"\naddress = "local"\n'
        store_path.write_text(content)

        with pytest.raises(CorruptStoreError) as exc_info:
            manager.load()

        assert "is not a table" in exc_info.value.current_error
        assert "not a token string" in exc_info.value.legacy_error
        assert store_path.read_text() == content

    def test_invalid_toml_is_corrupt(self, manager, store_path):
        """Test unparsable TOML raises CorruptStoreError."""
        store_path.parent.mkdir(parents=True)
        store_path.write_text("this is = = not toml")
        with pytest.raises(CorruptStoreError, match="might be corrupted"):
            manager.load()

    def test_invalid_utf8_is_corrupt(self, manager, store_path):
        """Test undecodable bytes raise CorruptStoreError and leave the file alone."""
        store_path.parent.mkdir(parents=True)
        content = b'alice = "\xff\xfe"\n'
        store_path.write_bytes(content)
        with pytest.raises(CorruptStoreError, match="might be corrupted"):
            manager.load()
        assert store_path.read_bytes() == content

    def test_empty_legacy_token_is_corrupt(self, manager, store_path):
        """Test legacy entries must carry a token."""
        store_path.parent.mkdir(parents=True)
        store_path.write_text('alice = ""\n')
        with pytest.raises(CorruptStoreError):
            manager.load()


class TestProfileStoreManagerSave:
    """Tests for writing the store file."""

    def test_save_sorted_and_secure(self, manager, store_path):
        """Test output order and file permissions."""
        manager.save(ProfileStore({"b": Profile("2"), "a": Profile("1")}))
        content = store_path.read_text()
        assert content.index("[a]") < content.index("[b]")
        assert os.stat(store_path).st_mode & 0o777 == 0o600
        assert not store_path.with_suffix(".tmp").exists()

    def test_failed_write_leaves_original(self, manager, store_path):
        """Test a write failure does not corrupt the existing file."""
        manager.save(ProfileStore({"a": Profile("1")}))
        before = store_path.read_text()

        with patch("pathlib.Path.replace", side_effect=OSError("disk full")):
            with pytest.raises(ProfileStoreError, match="Failed to write profiles file"):
                manager.save(ProfileStore({"b": Profile("2")}))

        assert store_path.read_text() == before
        assert not store_path.with_suffix(".tmp").exists()

    def test_save_writes_through_symlink(self, tmp_path, store_path):
        """Test a symlinked store stays a link and its target is updated."""
        target = tmp_path / "dotfiles" / "profiles.toml"
        target.parent.mkdir()
        target.write_text("")
        store_path.parent.mkdir(parents=True)
        store_path.symlink_to(target)

        ProfileStoreManager(store_path).save(ProfileStore({"a": Profile("1")}))

        assert store_path.is_symlink()
        assert tomli.loads(target.read_text()) == {"a": {"token": "1", "address": "local"}}
        assert not target.with_suffix(".tmp").exists()

    def test_reset(self, manager):
        """Test reset empties the store."""
        manager.save(ProfileStore({"a": Profile("1")}))
        manager.reset()
        assert len(manager.load()) == 0
