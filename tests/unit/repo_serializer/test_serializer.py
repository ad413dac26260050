from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pytest
from pytest_mock import MockerFixture

from repo_serializer import serializer
from repo_serializer.exceptions import ConfigurationError, OutputExistsError, PromptRequiredError
from repo_serializer.serializer import serialize_repo
from repo_serializer.settings import build_settings


@pytest.mark.unit
def test_serialize_repo_writes_both_outputs(sample_repo: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"

    result = serialize_repo(repo=sample_repo, output_dir=out)

    assert result.structure_path == (out / "repo_structure.txt").resolve()
    assert result.structure_path.read_text(encoding="utf-8") == result.structure
    assert result.content_path.read_text(encoding="utf-8") == result.content
    assert result.structure.splitlines()[0] == "sample/"
    assert "START OF FILE: file1.txt" in result.content


@pytest.mark.unit
def test_serialize_repo_accepts_settings_object(sample_repo: Path, tmp_path: Path) -> None:
    settings = build_settings(repo=sample_repo, output_dir=tmp_path / "out", content_file="c.txt")

    result = serialize_repo(settings)

    assert result.content_path.name == "c.txt"
    assert result.content_path.exists()


@pytest.mark.unit
def test_existing_outputs_raise_without_force(sample_repo: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    out.mkdir()
    (out / "repo_content.txt").write_text("old content", encoding="utf-8")

    with pytest.raises(OutputExistsError) as exc_info:
        serialize_repo(repo=sample_repo, output_dir=out)

    assert not isinstance(exc_info.value, PromptRequiredError)
    assert exc_info.value.paths == ((out / "repo_content.txt").resolve(),)
    assert not (out / "repo_structure.txt").exists()
    assert (out / "repo_content.txt").read_text(encoding="utf-8") == "old content"


@pytest.mark.unit
def test_existing_outputs_require_prompt_for_interactive_callers(sample_repo: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    out.mkdir()
    (out / "repo_structure.txt").write_text("old structure", encoding="utf-8")

    with pytest.raises(PromptRequiredError, match="PROMPT_REQUIRED"):
        serialize_repo(repo=sample_repo, output_dir=out, is_interactive=True)

    assert (out / "repo_structure.txt").read_text(encoding="utf-8") == "old structure"


@pytest.mark.unit
def test_force_overwrites_existing_outputs(sample_repo: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    out.mkdir()
    (out / "repo_structure.txt").write_text("old structure", encoding="utf-8")
    (out / "repo_content.txt").write_text("old content", encoding="utf-8")

    serialize_repo(repo=sample_repo, output_dir=out, force=True)

    assert "file1.txt" in (out / "repo_structure.txt").read_text(encoding="utf-8")
    assert "old content" not in (out / "repo_content.txt").read_text(encoding="utf-8")
    assert sorted(p.name for p in out.iterdir()) == ["repo_content.txt", "repo_structure.txt"]


@pytest.mark.unit
def test_outputs_inside_root_are_not_serialized(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "test.txt").write_text("test content", encoding="utf-8")
    (repo / "structure.txt").write_text("old structure", encoding="utf-8")
    (repo / "content.txt").write_text("old content", encoding="utf-8")

    options = {
        "repo": repo,
        "output_dir": repo,
        "structure_file": "structure.txt",
        "content_file": "content.txt",
        "force": True,
    }
    first = serialize_repo(**options)
    second = serialize_repo(**options)

    assert "old content" not in first.content
    assert "old structure" not in first.content
    assert "structure.txt" not in first.structure
    assert "test content" in first.content
    assert first.structure == second.structure
    assert first.content == second.content


@pytest.mark.unit
def test_configuration_errors_happen_before_any_io(sample_repo: Path, tmp_path: Path) -> None:
    out = tmp_path / "never"

    with pytest.raises(ConfigurationError):
        serialize_repo(repo=sample_repo, output_dir=out, max_file_size=100)

    assert not out.exists()


@pytest.mark.unit
def test_missing_root_is_a_configuration_error(tmp_path: Path) -> None:
    out = tmp_path / "out"

    with pytest.raises(ConfigurationError, match="not a directory"):
        serialize_repo(repo=tmp_path / "missing", output_dir=out)

    assert not out.exists()


@pytest.mark.unit
def test_new_output_directory_inside_root_is_stable_across_runs(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "a.txt").write_text("alpha", encoding="utf-8")

    first = serialize_repo(repo=repo, output_dir=repo / "out", force=True)
    second = serialize_repo(repo=repo, output_dir=repo / "out", force=True)

    assert first.structure == "repo/\n├── out/\n└── a.txt\n"
    assert second.structure == first.structure
    assert second.content == first.content
    assert "START OF FILE: out/" not in first.content


@pytest.mark.unit
def test_failed_write_leaves_previous_outputs(sample_repo: Path, tmp_path: Path, mocker: MockerFixture) -> None:
    out = tmp_path / "out"
    out.mkdir()
    (out / "repo_structure.txt").write_text("old structure", encoding="utf-8")
    (out / "repo_content.txt").write_text("old content", encoding="utf-8")
    real_stage = serializer.stage_file

    def _stage(path: Path, text: str) -> Path:
        if path.name == "repo_content.txt":
            raise OSError(28, "No space left on device")
        return real_stage(path, text)

    mocker.patch.object(serializer, "stage_file", side_effect=_stage)

    with pytest.raises(OSError, match="No space left"):
        serialize_repo(repo=sample_repo, output_dir=out, force=True)

    assert (out / "repo_structure.txt").read_text(encoding="utf-8") == "old structure"
    assert (out / "repo_content.txt").read_text(encoding="utf-8") == "old content"
    assert sorted(p.name for p in out.iterdir()) == ["repo_content.txt", "repo_structure.txt"]


def _binary_repo(sample_repo: Path) -> Path:
    (sample_repo / "image.bin").write_bytes(b"\x00\x01\x02\xff")
    return sample_repo


@pytest.mark.unit
def test_silent_mode_suppresses_informational_events(
    sample_repo: Path,
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.DEBUG)

    serialize_repo(repo=_binary_repo(sample_repo), output_dir=tmp_path / "out", silent=True)

    assert "Skipping non-text file" not in caplog.text
    assert "Entering directory" not in caplog.text
    assert "entry_ignored" not in caplog.text
    assert "Repository structure written to" not in caplog.text


@pytest.mark.unit
def test_silent_mode_still_reports_read_errors(
    sample_repo: Path,
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
    mocker: MockerFixture,
) -> None:
    (sample_repo / "locked.txt").write_text("secret", encoding="utf-8")
    real_open = Path.open

    def _open(self: Path, *args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
        if self.name == "locked.txt":
            raise PermissionError(13, "Permission denied")
        return real_open(self, *args, **kwargs)

    mocker.patch.object(Path, "open", _open)
    caplog.set_level(logging.DEBUG)

    result = serialize_repo(repo=sample_repo, output_dir=tmp_path / "out", silent=True)

    assert "Error reading file" in caplog.text
    assert "locked.txt" in caplog.text
    assert "locked.txt" in result.structure
    assert "START OF FILE: locked.txt" not in result.content


@pytest.mark.unit
def test_default_mode_logs_skips_but_not_traces(
    sample_repo: Path,
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.DEBUG)

    serialize_repo(repo=_binary_repo(sample_repo), output_dir=tmp_path / "out")

    assert "Skipping non-text file image.bin" in caplog.text
    assert "Repository structure written to" in caplog.text
    assert "Entering directory" not in caplog.text
    assert "entry_ignored" not in caplog.text


@pytest.mark.unit
def test_verbose_mode_traces_directories_and_pruned_entries(
    sample_repo: Path,
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.DEBUG)

    serialize_repo(repo=_binary_repo(sample_repo), output_dir=tmp_path / "out", verbose=True)

    assert "Entering directory" in caplog.text
    assert "entry_ignored" in caplog.text
    assert "ignored.txt" in caplog.text
    assert "Skipping non-text file image.bin" in caplog.text
