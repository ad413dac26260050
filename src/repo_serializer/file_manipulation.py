from __future__ import annotations

import codecs
import os
import re
import stat
from pathlib import Path
from typing import TYPE_CHECKING

from repo_serializer.config import REPLACEMENT_CHAR, DirectoryEntry, Ordering
from repo_serializer.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repo_serializer.ignore import PatternSet

# C0 controls except TAB, LF, VT, FF and CR; DEL; C1 controls.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0e-\x1f\x7f-\x9f]")


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.
    """
    try:
        st = path.stat()
        return stat.S_ISREG(st.st_mode)
    except OSError:
        return False


def list_entries(directory: Path, root: Path, pattern_set: PatternSet) -> list[DirectoryEntry]:
    """List the entries of `directory` that survive `pattern_set`.

    Entries are enumerated fresh on every call. Symbolic links are never
    treated as directories, so traversal cannot loop. An unreadable
    directory is logged and yields no entries.

    Args:
        directory (Path): the directory to list
        root (Path): the tree root, used to compute relative paths
        pattern_set (PatternSet): the rules active inside `directory`

    Returns:
        list[DirectoryEntry]: the non-ignored entries, in no particular order
    """
    out: list[DirectoryEntry] = []
    try:
        with os.scandir(directory) as it:
            for de in it:
                path = Path(de.path)
                entry = DirectoryEntry(
                    name=de.name,
                    path=path,
                    rel=relpath(path, root),
                    is_dir=de.is_dir(follow_symlinks=False),
                )
                if pattern_set.matches(entry.match_path):
                    logger.debug("entry_ignored", path=entry.match_path)
                    continue
                out.append(entry)
    except OSError as e:
        logger.warning("Cannot list directory %s: %s", directory, e)
        return []
    return out


def order_entries(entries: Sequence[DirectoryEntry], ordering: Ordering = Ordering.DIRECTORIES_FIRST) -> list[DirectoryEntry]:
    """Order sibling entries.

    Names compare case-sensitively by code point.

    Args:
        entries (Sequence[DirectoryEntry]): the siblings to order
        ordering (Ordering): directories before files, or purely by name

    Returns:
        list[DirectoryEntry]: the ordered entries
    """
    if ordering is Ordering.HIERARCHICAL:
        return sorted(entries, key=lambda e: e.name)
    return sorted(entries, key=lambda e: (not e.is_dir, e.name))


def sanitize_text(text: str) -> str:
    """Replace disallowed control characters with U+FFFD."""
    return _CONTROL_CHARS.sub(REPLACEMENT_CHAR, text)


def decode_utf8(data: bytes, *, final: bool = True) -> str:
    """Decode UTF-8, mapping invalid sequences to U+FFFD.

    With `final=False` an incomplete sequence at the very end is dropped
    rather than replaced, which is what a sample cut at an arbitrary byte
    offset needs.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    return decoder.decode(data, final=final)


def read_sample(path: Path, max_size: int) -> tuple[bytes, bool]:
    """Read at most `max_size` bytes from the start of a file.

    Args:
        path (Path): the file to sample
        max_size (int): the byte cap

    Returns:
        tuple[bytes, bool]: the sample, and whether the file continues past it
    """
    with path.open("rb") as f:
        data = f.read(max_size)
        truncated = len(data) == max_size and bool(f.read(1))
    return data, truncated


def replacement_ratio(text: str) -> float:
    """Share of U+FFFD characters in `text` (0 for empty text)."""
    if not text:
        return 0.0
    return text.count(REPLACEMENT_CHAR) / len(text)


def is_text(path: Path, max_size: int, max_replacement_ratio: float = 0.0) -> bool:
    """Decide whether a file is safe to embed as text.

    Only the first `max_size` bytes are inspected. They are decoded as UTF-8
    and control characters are replaced as in `sanitize_text`; the file is
    rejected when the share of U+FFFD exceeds `max_replacement_ratio`. A ratio
    of 0 rejects on any occurrence. Empty files are text.

    Read errors are logged as warnings and classify the file as not text.

    Args:
        path (Path): the file to classify
        max_size (int): number of bytes sampled
        max_replacement_ratio (float): tolerated share of replacement characters

    Returns:
        bool: True if the file should be embedded
    """
    if not is_regular_file(path):
        logger.debug("not_a_regular_file", path=str(path))
        return False
    try:
        data, truncated = read_sample(path, max_size)
    except OSError as e:
        logger.warning("Error reading file %s: %s", path, e)
        return False
    if not data:
        return True

    text = sanitize_text(decode_utf8(data, final=not truncated))
    if max_replacement_ratio == 0:
        return REPLACEMENT_CHAR not in text
    return replacement_ratio(text) <= max_replacement_ratio


def read_text_body(path: Path, *, keep_replacement_chars: bool = False) -> str | None:
    """Read a whole file as text, transformed the same way it was classified.

    Args:
        path (Path): the file to read
        keep_replacement_chars (bool): keep U+FFFD markers instead of stripping them

    Returns:
        str | None: the body, or None if the file could not be read
    """
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.warning("Error reading file %s: %s", path, e)
        return None
    text = sanitize_text(decode_utf8(data))
    if not keep_replacement_chars:
        text = text.replace(REPLACEMENT_CHAR, "")
    return text
