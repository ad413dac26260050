"""Layered gitignore-style rules.

A `PatternSet` is an ordered stack of `IgnoreRules` layers. Each layer keeps
the directory it was declared in, so a rule such as ``/.env`` read from
``a/b/.gitignore`` is anchored to ``a/b`` and not to the tree root. Sets are
immutable: descending into a directory produces a new set and leaves the
parent's set untouched for the remaining siblings.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import pathspec
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from repo_serializer.config import ALWAYS_IGNORE, DEFAULT_IGNORE, GITIGNORE_FILENAME
from repo_serializer.file_manipulation import relpath
from repo_serializer.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

_GLOB_SPECIALS = re.compile(r"([\\*?\[\]])")
# Trailing blanks are insignificant unless escaped with a backslash.
_TRAILING_SPACE = re.compile(r"(?<!\\)\s+$")


class IgnoreRules(BaseModel):
    """Patterns declared together, relative to a single base directory."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    base: str = Field(default="", description="Root-relative POSIX directory, '' for the root")
    patterns: tuple[str, ...] = Field(default_factory=tuple, description="Pattern lines")

    _spec: pathspec.GitIgnoreSpec = PrivateAttr()

    def model_post_init(self, __context: object) -> None:
        self._spec = pathspec.GitIgnoreSpec.from_lines(self.patterns)

    def localize(self, rel_path: str) -> str | None:
        """Express a root-relative path relative to this layer's base.

        Args:
            rel_path (str): root-relative path, `/`-suffixed for directories

        Returns:
            str | None: the path below `base`, or None if the layer does not cover it
        """
        if not self.base:
            return rel_path
        prefix = self.base + "/"
        if rel_path.startswith(prefix) and len(rel_path) > len(prefix):
            return rel_path[len(prefix) :]
        return None

    def matches(self, rel_path: str) -> bool:
        if not self.patterns:
            return False
        local = self.localize(rel_path)
        return local is not None and self._spec.match_file(local)


class PatternSet(BaseModel):
    """The active, directory-scoped stack of ignore rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    layers: tuple[IgnoreRules, ...] = Field(default_factory=tuple)

    def matches(self, rel_path: str) -> bool:
        """Check whether a root-relative path is ignored.

        Directories must be passed with a trailing `/` so that directory-only
        rules apply to them.

        Args:
            rel_path (str): path relative to the tree root, POSIX separators

        Returns:
            bool: True if any active layer ignores the path
        """
        return any(layer.matches(rel_path) for layer in self.layers)

    def extend(self, base: str, patterns: Iterable[str]) -> PatternSet:
        """Return a new set with `patterns` layered on top, anchored at `base`."""
        pats = tuple(patterns)
        if not pats:
            return self
        return PatternSet(layers=(*self.layers, IgnoreRules(base=base, patterns=pats)))

    @property
    def patterns(self) -> list[str]:
        """Flattened view of every rule, each prefixed with its base directory."""
        out: list[str] = []
        for layer in self.layers:
            out.extend(f"{layer.base}:{p}" if layer.base else p for p in layer.patterns)
        return out


def strip_pattern(line: str) -> str:
    """Trim a pattern line, keeping a backslash-escaped trailing space."""
    return _TRAILING_SPACE.sub("", line.lstrip())


def parse_ignore_lines(text: str) -> list[str]:
    """Parse the contents of a `.gitignore` file.

    Blank lines and `#` comments are dropped. Re-inclusion rules (`!pattern`)
    are not supported and are skipped.

    Args:
        text (str): the raw file contents

    Returns:
        list[str]: the pattern lines, in file order
    """
    out: list[str] = []
    for line in text.splitlines():
        s = strip_pattern(line)
        if not s or s.startswith("#"):
            continue
        if s.startswith("!"):
            logger.debug("negation_pattern_skipped", pattern=s)
            continue
        out.append(s)
    return out


def literal_pattern(rel: str) -> str:
    """Build an anchored pattern matching exactly one root-relative path."""
    return "/" + _GLOB_SPECIALS.sub(r"\\\1", rel.strip("/"))


def base_set(
    user_patterns: Sequence[str] = (),
    *,
    include_defaults: bool = True,
    extra: Sequence[str] = (),
) -> PatternSet:
    """Build the root pattern set: always, then defaults, then user patterns.

    Args:
        user_patterns (Sequence[str]): additional gitignore-syntax rules
        include_defaults (bool): whether the hidden-file/lock-file layer is active
        extra (Sequence[str]): rules appended after the user patterns

    Returns:
        PatternSet: the set every traversal starts from
    """
    ps = PatternSet().extend("", ALWAYS_IGNORE)
    if include_defaults:
        ps = ps.extend("", DEFAULT_IGNORE)
    ps = ps.extend("", parse_ignore_lines("\n".join(user_patterns)))
    return ps.extend("", extra)


def derive(parent: PatternSet, directory: Path, root: Path, *, read_gitignore: bool = True) -> PatternSet:
    """Derive the pattern set active inside `directory`.

    The local `.gitignore` (if any) is layered on top of `parent`, anchored at
    `directory`. A missing or unreadable file adds nothing.

    Args:
        parent (PatternSet): the set active in the parent directory
        directory (Path): the directory being entered
        root (Path): the tree root
        read_gitignore (bool): whether local ignore files are consulted at all

    Returns:
        PatternSet: the set for `directory`; `parent` itself if nothing was added
    """
    if not read_gitignore:
        return parent
    gitignore = directory / GITIGNORE_FILENAME
    try:
        if not gitignore.is_file():
            return parent
        text = gitignore.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug("gitignore_unreadable", path=str(gitignore), error=str(e))
        return parent
    base = relpath(directory, root)
    if base == ".":
        base = ""
    return parent.extend(base, parse_ignore_lines(text))
