"""Error taxonomy for dotsecrets.

Every error is either local (fixable without touching the backend) or
remote (network, credentials or backend state). The CLI uses ``where`` to
tell the user which side the problem is on.
"""


class SecretsError(Exception):
    where = "local"


class LocalError(SecretsError):
    where = "local"


class RemoteError(SecretsError):
    where = "remote"


class PathNotFoundError(LocalError):
    def __init__(self, paths: list[str] | str):
        if isinstance(paths, str):
            paths = [paths]
        self.paths = list(paths)
        joined = ", ".join(self.paths)
        super().__init__(f"Tracked path(s) not found: {joined}")


class EmptyRegistryError(LocalError):
    def __init__(self):
        super().__init__("No paths tracked. Use 'dotsecrets add <path>' first.")


class RegistryError(LocalError):
    pass


class InvalidGroupError(LocalError):
    def __init__(self, group: str):
        self.group = group
        super().__init__(
            f"Invalid group name: {group!r} (use letters, digits, '.', '_' or '-')"
        )


class ChunkBudgetExceededError(LocalError):
    def __init__(self, chunks: int, max_chunks: int, backend_type: str):
        self.chunks = chunks
        self.max_chunks = max_chunks
        super().__init__(
            f"Encrypted archive needs {chunks} chunks but the {backend_type} "
            f"backend allows at most {max_chunks}. Track fewer or smaller files."
        )


class DecryptionError(LocalError):
    """Wrong passphrase or corrupted ciphertext.

    The two causes are deliberately reported identically.
    """

    def __init__(self):
        super().__init__("Decryption failed: wrong passphrase or corrupted data")


class ArchiveError(LocalError):
    pass


class ConfigError(LocalError):
    pass


class BackendUnavailable(RemoteError):
    pass


class Unauthorized(RemoteError):
    pass


class NotFoundError(RemoteError):
    pass


class CorruptMetadataError(RemoteError):
    """A group's metadata record exists but cannot be parsed."""

    def __init__(self, group: str, detail: str):
        self.group = group
        super().__init__(f"Unreadable metadata for group '{group}': {detail}")


class NoSecretsFoundError(NotFoundError):
    def __init__(self, group: str):
        self.group = group
        super().__init__(f"No secrets found for group '{group}'")
