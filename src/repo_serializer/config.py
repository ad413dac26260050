from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field

__version__ = "1.0.0"


class Ordering(StrEnum):
    """Sibling ordering used when emitting content blocks.

    `DIRECTORIES_FIRST` mirrors the structure listing. `HIERARCHICAL` sorts
    files and directories together, purely by name.
    """

    DIRECTORIES_FIRST = auto()
    HIERARCHICAL = auto()


# Never overridable: version-control metadata.
ALWAYS_IGNORE: tuple[str, ...] = (".git/",)

# Dropped with `no_default_ignores`: hidden files, hidden directories, lock file.
DEFAULT_IGNORE: tuple[str, ...] = (
    ".*",
    ".*/",
    "package-lock.json",
)

GITIGNORE_FILENAME = ".gitignore"

DEFAULT_STRUCTURE_FILE = "repo_structure.txt"
DEFAULT_CONTENT_FILE = "repo_content.txt"

MIN_FILE_SIZE = 512
MAX_FILE_SIZE = 4 * 1024 * 1024
DEFAULT_MAX_FILE_SIZE = 8192

REPLACEMENT_CHAR = "\ufffd"

BLOCK_SEPARATOR = "=" * 48

TREE_BRANCH = "├── "
TREE_LAST = "└── "
TREE_PIPE = "│   "
TREE_SPACE = "    "


class DirectoryEntry(BaseModel):
    """A single directory listing entry, enumerated fresh on each visit.

    Attributes:
        name: Entry name inside its parent directory.
        path: Absolute path on disk.
        rel: Path relative to the tree root, POSIX separators, no trailing slash.
        is_dir: Whether the entry is a directory (symlinks are not followed).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str = Field(..., description="Entry name")
    path: Path = Field(..., description="Absolute path")
    rel: str = Field(..., description="Path relative to the tree root")
    is_dir: bool = Field(default=False, description="Directory flag")

    @computed_field
    @property
    def match_path(self) -> str:
        """Relative path as handed to the ignore matcher, `/`-suffixed for directories."""
        return f"{self.rel}/" if self.is_dir else self.rel

    @computed_field
    @property
    def display_name(self) -> str:
        """Name as shown in the structure listing."""
        return f"{self.name}/" if self.is_dir else self.name
