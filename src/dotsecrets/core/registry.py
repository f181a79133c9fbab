"""Registry of tracked paths, stored as a plain text file."""

import os
from collections.abc import Iterator
from pathlib import Path

from dotsecrets.core.models import PathState, TrackedPathStatus
from dotsecrets.errors import PathNotFoundError, RegistryError


class Registry:
    """Durable list of paths to sync, relative to the home directory.

    The file holds one home-relative path per line with no header. It is
    re-read on every call so iteration always reflects what is on disk.
    """

    def __init__(self, registry_file: Path | str, home: Path | str | None = None):
        self.registry_file = Path(registry_file).expanduser()
        self.home = Path(home).expanduser() if home else Path.home()

    def normalize(self, path: Path | str) -> str:
        """Return ``path`` as a normalized path relative to home.

        Relative input is resolved against the current directory. Symlinks
        are kept as-is so a tracked link is archived under its own name.
        """
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = Path.cwd() / candidate
        absolute = Path(os.path.normpath(candidate))
        home = Path(os.path.normpath(self.home.absolute()))

        try:
            relative = absolute.relative_to(home)
        except ValueError:
            # Home may be reached through a symlinked prefix
            real_parent = Path(os.path.realpath(absolute.parent))
            try:
                relative = (real_parent / absolute.name).relative_to(
                    os.path.realpath(home)
                )
            except ValueError:
                raise RegistryError(f"Path is not inside {home}: {path}") from None

        if relative == Path("."):
            raise RegistryError("Refusing to track the home directory itself")
        return relative.as_posix()

    def resolve(self, entry: str) -> Path:
        return self.home / entry

    def __iter__(self) -> Iterator[str]:
        return self.entries()

    def entries(self) -> Iterator[str]:
        if not self.registry_file.exists():
            return

        seen: set[str] = set()
        with open(self.registry_file, encoding="utf-8") as f:
            for line in f:
                entry = line.strip()
                if not entry or entry in seen:
                    continue
                seen.add(entry)
                yield entry

    def add(self, path: Path | str) -> tuple[bool, str]:
        """Track ``path``. Returns ``(added, entry)``; re-adding is a no-op."""
        entry = self.normalize(path)
        if not self.resolve(entry).exists():
            raise PathNotFoundError(entry)

        if entry in set(self.entries()):
            return False, entry

        self.registry_file.parent.mkdir(parents=True, exist_ok=True)
        needs_newline = (
            self.registry_file.exists()
            and self.registry_file.stat().st_size > 0
            and not self.registry_file.read_bytes().endswith(b"\n")
        )
        with open(self.registry_file, "a", encoding="utf-8") as f:
            if needs_newline:
                f.write("\n")
            f.write(entry + "\n")
        return True, entry

    def remove(self, path: Path | str) -> tuple[bool, str]:
        """Stop tracking ``path``. Returns ``(removed, entry)``."""
        entry = self.normalize(path)
        entries = list(self.entries())
        if entry not in entries:
            return False, entry

        remaining = [e for e in entries if e != entry]
        tmp_file = self.registry_file.with_suffix(".tmp")
        tmp_file.write_text(
            "".join(f"{e}\n" for e in remaining), encoding="utf-8"
        )
        os.replace(tmp_file, self.registry_file)
        return True, entry

    def status(self) -> list[TrackedPathStatus]:
        statuses = []
        for entry in self.entries():
            state = (
                PathState.PRESENT
                if self.resolve(entry).exists()
                else PathState.MISSING
            )
            statuses.append(TrackedPathStatus(path=entry, state=state))
        return statuses
