"""Exception hierarchy for spacetime-token.

Every failure the tool reports to the user derives from SpacetimeTokenError.
Command handlers catch that base class, print the message, and exit with the
error's exit_code. Anything else is treated as an unexpected failure.
"""


class SpacetimeTokenError(Exception):
    """Base exception for spacetime-token errors."""

    exit_code = 1


class NotFoundError(SpacetimeTokenError):
    """Raised when a profile, document, or executable does not exist."""

    pass


class ProfileNotFoundError(NotFoundError):
    """Raised when a named profile is not in the profile store."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        self.available = sorted(available or [])
        message = f"Profile '{name}' not found"
        if self.available:
            message += f". Available profiles: {', '.join(self.available)}"
        super().__init__(message)


class ConfigNotFoundError(NotFoundError):
    """Raised when the spacetime CLI config document does not exist."""

    pass


class NoProfilesError(NotFoundError):
    """Raised when no profile matches a selection."""

    pass


class ExecutableNotFoundError(NotFoundError):
    """Raised when the external spacetime executable cannot be launched."""

    pass


class AlreadyExistsError(SpacetimeTokenError):
    """Raised when creating a profile under a name that is already taken."""

    pass


class CorruptStoreError(SpacetimeTokenError):
    """Raised when the profile store parses as neither the current nor the legacy schema."""

    def __init__(self, path, current_error: str, legacy_error: str):
        self.path = path
        self.current_error = current_error
        self.legacy_error = legacy_error
        super().__init__(
            f"Failed to parse profiles file at {path}. It might be corrupted.\n"
            f"  Current format: {current_error}\n"
            f"  Legacy format: {legacy_error}"
        )


class ProfileStoreError(SpacetimeTokenError):
    """Raised when the profile store cannot be read or written."""

    pass


class ConfigDocumentError(SpacetimeTokenError):
    """Raised when the spacetime CLI config document is unreadable or malformed."""

    pass


class SettingsError(SpacetimeTokenError):
    """Raised when the spacetime-token settings file is invalid."""

    pass


class ConflictingAddressError(SpacetimeTokenError):
    """Raised when a profile's stored address differs from a requested environment."""

    def __init__(self, name: str, address: str, requested: str):
        self.name = name
        self.address = address
        self.requested = requested
        super().__init__(
            f"Profile '{name}' uses address '{address}' "
            f"which does not match the requested environment '{requested}'"
        )


class NotLoggedInError(SpacetimeTokenError):
    """Raised when a required session key is absent from the CLI config document."""

    pass


class SubprocessError(SpacetimeTokenError):
    """Raised when the external spacetime command exits with a nonzero status."""

    def __init__(self, message: str, returncode: int | None = None):
        self.returncode = returncode
        super().__init__(message)


class NetworkError(SpacetimeTokenError):
    """Raised when fetching a server-issued token fails."""

    pass


class AmbiguousSelectionError(SpacetimeTokenError):
    """Raised when several profiles match and no interactive choice is possible."""

    exit_code = 2

    def __init__(self, candidates: list[str], environment: str | None = None):
        self.candidates = list(candidates)
        self.environment = environment
        scope = f" for environment '{environment}'" if environment else ""
        super().__init__(
            f"Multiple profiles match{scope}: {', '.join(self.candidates)}\n"
            "Pass a profile name explicitly to choose one."
        )


class SelectionCancelledError(SpacetimeTokenError):
    """Raised when the user cancels an interactive profile selection."""

    pass


__all__ = [
    "AlreadyExistsError",
    "AmbiguousSelectionError",
    "ConfigDocumentError",
    "ConfigNotFoundError",
    "ConflictingAddressError",
    "CorruptStoreError",
    "ExecutableNotFoundError",
    "NetworkError",
    "NoProfilesError",
    "NotFoundError",
    "NotLoggedInError",
    "ProfileNotFoundError",
    "ProfileStoreError",
    "SelectionCancelledError",
    "SettingsError",
    "SpacetimeTokenError",
    "SubprocessError",
]
