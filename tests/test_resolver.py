"""Tests for job resolution and directory expansion."""

from pathlib import Path

import pytest

from flcmd.errors import InputNotFoundError, UnsupportedExtensionError
from flcmd.resolver import (
    Job,
    SupportedExtensionSet,
    expand_input_directories,
    resolve_job,
    resolve_jobs,
)

RUN_EXTENSIONS = SupportedExtensionSet(inputs=("fl", "flc"), outputs=("png", "bmp"))
PACK_EXTENSIONS = SupportedExtensionSet(inputs=("",), outputs=("flres",))
UNPACK_EXTENSIONS = SupportedExtensionSet(inputs=("flres",), outputs=("",))


class TestSupportedExtensionSet:
    """Tests for SupportedExtensionSet."""

    def test_accepts(self):
        """Inputs and outputs are matched by suffix."""
        assert RUN_EXTENSIONS.accepts_input(Path("a.fl"))
        assert RUN_EXTENSIONS.accepts_input(Path("a.flc"))
        assert not RUN_EXTENSIONS.accepts_input(Path("a.txt"))
        assert RUN_EXTENSIONS.accepts_output(Path("a.bmp"))

    def test_empty_extension_means_directory(self):
        """An empty extension accepts suffix-less paths only."""
        assert PACK_EXTENSIONS.accepts_input(Path("textures"))
        assert not PACK_EXTENSIONS.accepts_input(Path("textures.zip"))

    def test_default_output_uses_first_extension(self):
        """The synthesized output uses the first output extension."""
        assert RUN_EXTENSIONS.default_output(Path("/x/noise.fl")) == Path("/x/noise.png")

    def test_default_output_without_extension(self):
        """An empty output extension yields the bare stem."""
        assert UNPACK_EXTENSIONS.default_output(Path("/x/pkg.flres")) == Path("/x/pkg")

    def test_requires_output_extension(self):
        """At least one output extension is required."""
        with pytest.raises(ValueError):
            SupportedExtensionSet(inputs=("fl",), outputs=())


class TestResolveJob:
    """Tests for resolve_job."""

    def test_synthesized_output(self, tmp_path):
        """Without an output the job writes next to the input."""
        job = resolve_job(0, tmp_path / "noise.fl", [], RUN_EXTENSIONS)
        assert job == Job(tmp_path / "noise.fl", tmp_path / "noise.png")

    def test_explicit_output(self, tmp_path):
        """An output at the same index is used."""
        job = resolve_job(0, tmp_path / "noise.fl", [tmp_path / "out" / "n.bmp"], RUN_EXTENSIONS)
        assert job.output_path == tmp_path / "out" / "n.bmp"

    def test_paths_are_absolute(self, tmp_path, monkeypatch):
        """Relative inputs resolve against the working directory."""
        monkeypatch.chdir(tmp_path)
        job = resolve_job(0, "noise.fl", [], RUN_EXTENSIONS)
        assert job.input_path.is_absolute()
        assert job.input_path == tmp_path / "noise.fl"

    def test_bad_input_extension(self, tmp_path):
        """An unsupported input extension raises."""
        with pytest.raises(UnsupportedExtensionError) as exc:
            resolve_job(0, tmp_path / "a.txt", [], RUN_EXTENSIONS)
        assert exc.value.extension == ".txt"

    def test_bad_output_extension(self, tmp_path):
        """An unsupported output extension raises."""
        with pytest.raises(UnsupportedExtensionError) as exc:
            resolve_job(0, tmp_path / "a.fl", [tmp_path / "a.jpg"], RUN_EXTENSIONS)
        assert exc.value.extension == ".jpg"

    def test_output_for_other_index_is_not_used(self, tmp_path):
        """Outputs are paired by position only."""
        job = resolve_job(1, tmp_path / "b.fl", [tmp_path / "a.bmp"], RUN_EXTENSIONS)
        assert job.output_path == tmp_path / "b.png"


class TestResolveJobs:
    """Tests for resolve_jobs."""

    def test_pairs_outputs_by_position(self, tmp_path):
        """Missing outputs are synthesized per input."""
        jobs = resolve_jobs(
            [tmp_path / "a.fl", tmp_path / "b.fl", tmp_path / "c.flc"],
            [tmp_path / "x.bmp"],
            RUN_EXTENSIONS,
        )
        assert [j.output_path.name for j in jobs] == ["x.bmp", "b.png", "c.png"]

    def test_extra_outputs_ignored(self, tmp_path):
        """Outputs beyond the inputs are ignored."""
        jobs = resolve_jobs([tmp_path / "a.fl"], [tmp_path / "x.png", tmp_path / "y.png"], RUN_EXTENSIONS)
        assert len(jobs) == 1

    def test_one_bad_input_fails_the_batch(self, tmp_path):
        """One unsupported input fails the whole resolution."""
        with pytest.raises(UnsupportedExtensionError):
            resolve_jobs([tmp_path / "a.fl", tmp_path / "b.txt"], [], RUN_EXTENSIONS)

    def test_empty(self):
        """No inputs resolve to no jobs."""
        assert resolve_jobs([], [], RUN_EXTENSIONS) == []


class TestExpandInputDirectories:
    """Tests for expand_input_directories."""

    def test_expands_flc_before_fl(self, tmp_path):
        """.flc files come before .fl files; other files are ignored."""
        programs = tmp_path / "programs"
        (programs / "nested").mkdir(parents=True)
        (programs / "a.fl").write_text("")
        (programs / "nested" / "b.fl").write_text("")
        (programs / "c.flc").write_text("")
        (programs / "readme.txt").write_text("")

        expanded = expand_input_directories([programs])
        assert [p.suffix for p in expanded] == [".flc", ".fl", ".fl"]
        assert {p.name for p in expanded} == {"a.fl", "b.fl", "c.flc"}

    def test_files_pass_through(self, tmp_path):
        """Inputs with an extension pass through."""
        single = tmp_path / "single.fl"
        assert expand_input_directories([single]) == [single]

    def test_directory_itself_is_not_returned(self, tmp_path):
        """Directories matching a pattern are not returned."""
        programs = tmp_path / "programs"
        (programs / "sub.fl").mkdir(parents=True)
        (programs / "real.fl").write_text("")
        expanded = expand_input_directories([programs])
        assert expanded == [programs / "real.fl"]

    def test_empty_directory(self, tmp_path):
        """An empty directory expands to nothing."""
        assert expand_input_directories([tmp_path]) == []

    def test_missing_directory_raises(self, tmp_path):
        """A suffix-less input that is not a directory raises."""
        with pytest.raises(InputNotFoundError, match="Input directory not found"):
            expand_input_directories([tmp_path / "missing"])

    def test_order_of_inputs_kept(self, tmp_path):
        """Expanded files keep the position of their directory."""
        d = tmp_path / "d"
        d.mkdir()
        (d / "x.fl").write_text("")
        first = tmp_path / "first.fl"
        expanded = expand_input_directories([first, d])
        assert expanded == [first, d / "x.fl"]
