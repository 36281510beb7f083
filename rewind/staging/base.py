from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

FILE = "file"
DIRECTORY = "directory"


@dataclass(frozen=True)
class StagedSnapshot:
    """A private copy of a file or directory tree, taken before mutating it."""

    id: str
    source: Path
    """Absolute path the copy was taken from."""

    staged: Path
    """Location of the copy inside the staging store."""

    kind: str
    """FILE or DIRECTORY."""

    @property
    def is_directory(self):
        return self.kind == DIRECTORY


class StagingStore(ABC):
    """Base interface for staging backends.

    Staged copies are an explicit resource: every stage() must eventually be
    paired with a discard(), or the copy stays on disk.

    Implementations: LocalStagingStore.
    """

    @abstractmethod
    def stage(self, path):
        """Copy path into the store. Returns a StagedSnapshot."""
        pass

    @abstractmethod
    def restore(self, snapshot, destination=None):
        """Copy the staged contents over destination (default: the source). Returns the path."""
        pass

    @abstractmethod
    def discard(self, snapshot):
        """Delete the staged copy."""
        pass

    @abstractmethod
    def list(self):
        """List staged copies still held by the store."""
        pass
