from __future__ import annotations

from typing import TYPE_CHECKING

from repo_serializer.config import (
    BLOCK_SEPARATOR,
    DEFAULT_MAX_FILE_SIZE,
    TREE_BRANCH,
    TREE_LAST,
    TREE_PIPE,
    TREE_SPACE,
    Ordering,
)
from repo_serializer.file_manipulation import is_text, list_entries, order_entries, read_text_body
from repo_serializer.ignore import derive
from repo_serializer.logging import logger

if TYPE_CHECKING:
    from pathlib import Path

    from repo_serializer.ignore import PatternSet


def build_structure(
    directory: Path,
    pattern_set: PatternSet,
    root: Path,
    prefix: str = "",
    *,
    read_gitignore: bool = True,
) -> str:
    """Build a visual tree of the directory structure.

    When `directory` is the tree root, the root's own name (with a trailing
    `/`) comes first. Directories precede files at every level and ignored
    entries are pruned before their subtree is ever visited.

    Args:
        directory (Path): the directory to render
        pattern_set (PatternSet): the rules inherited from the parent directory
        root (Path): the tree root
        prefix (str): indentation carried down from the ancestors
        read_gitignore (bool): whether local `.gitignore` files are consulted

    Returns:
        str: the tree, one entry per line, newline-terminated
    """
    lines: list[str] = []
    if directory == root:
        lines.append(f"{root.name}/")
    _structure_lines(directory, pattern_set, root, prefix, lines, read_gitignore=read_gitignore)
    return "".join(f"{ln}\n" for ln in lines)


def _structure_lines(
    directory: Path,
    parent_set: PatternSet,
    root: Path,
    prefix: str,
    lines: list[str],
    *,
    read_gitignore: bool,
) -> None:
    local_set = derive(parent_set, directory, root, read_gitignore=read_gitignore)
    entries = order_entries(list_entries(directory, root, local_set))
    for idx, entry in enumerate(entries):
        last = idx == len(entries) - 1
        lines.append(prefix + (TREE_LAST if last else TREE_BRANCH) + entry.display_name)
        if entry.is_dir:
            ext = TREE_SPACE if last else TREE_PIPE
            _structure_lines(entry.path, local_set, root, prefix + ext, lines, read_gitignore=read_gitignore)


def format_file_block(rel: str, body: str) -> str:
    """Wrap a file body in its delimited block.

    Args:
        rel (str): the file path relative to the tree root, POSIX separators
        body (str): the (already transformed) file contents

    Returns:
        str: the block, preceded by two blank lines
    """
    return (
        "\n\n"
        f"{BLOCK_SEPARATOR}\n"
        f"START OF FILE: {rel}\n"
        f"{BLOCK_SEPARATOR}\n"
        f"{body}\n"
        f"{BLOCK_SEPARATOR}\n"
        f"END OF FILE: {rel}\n"
        f"{BLOCK_SEPARATOR}\n"
    )


def build_content(
    directory: Path,
    pattern_set: PatternSet,
    root: Path,
    *,
    ordering: Ordering = Ordering.DIRECTORIES_FIRST,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    max_replacement_ratio: float = 0.0,
    keep_replacement_chars: bool = False,
    read_gitignore: bool = True,
) -> str:
    """Concatenate the text files under `directory` into delimited blocks.

    Pruning and `.gitignore` derivation follow `build_structure`, so the
    files emitted here are exactly the structure's files that pass `is_text`.

    Args:
        directory (Path): the directory to serialize
        pattern_set (PatternSet): the rules inherited from the parent directory
        root (Path): the tree root, used for the paths shown in block markers
        ordering (Ordering): sibling ordering of the emitted blocks
        max_file_size (int): bytes sampled for text classification
        max_replacement_ratio (float): tolerated share of U+FFFD in the sample
        keep_replacement_chars (bool): keep U+FFFD markers in the emitted bodies
        read_gitignore (bool): whether local `.gitignore` files are consulted

    Returns:
        str: the concatenated blocks, without leading whitespace
    """
    blocks: list[str] = []
    _content_blocks(
        directory,
        pattern_set,
        root,
        blocks,
        ordering=ordering,
        max_file_size=max_file_size,
        max_replacement_ratio=max_replacement_ratio,
        keep_replacement_chars=keep_replacement_chars,
        read_gitignore=read_gitignore,
    )
    return "".join(blocks).lstrip()


def _content_blocks(  # noqa: PLR0913
    directory: Path,
    parent_set: PatternSet,
    root: Path,
    blocks: list[str],
    *,
    ordering: Ordering,
    max_file_size: int,
    max_replacement_ratio: float,
    keep_replacement_chars: bool,
    read_gitignore: bool,
) -> None:
    local_set = derive(parent_set, directory, root, read_gitignore=read_gitignore)
    for entry in order_entries(list_entries(directory, root, local_set), ordering):
        if entry.is_dir:
            logger.debug("Entering directory %s", entry.rel)
            _content_blocks(
                entry.path,
                local_set,
                root,
                blocks,
                ordering=ordering,
                max_file_size=max_file_size,
                max_replacement_ratio=max_replacement_ratio,
                keep_replacement_chars=keep_replacement_chars,
                read_gitignore=read_gitignore,
            )
            continue
        if not is_text(entry.path, max_file_size, max_replacement_ratio):
            logger.info("Skipping non-text file %s", entry.rel)
            continue
        body = read_text_body(entry.path, keep_replacement_chars=keep_replacement_chars)
        if body is None:
            continue
        logger.debug("Adding file %s", entry.rel)
        blocks.append(format_file_block(entry.rel, body))
