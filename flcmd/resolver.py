"""
Job resolution for batch commands.

Turns the raw --input/--output lists into one Job per input:
- bare directories expand into the program files found beneath them
- missing outputs are synthesized next to the input
- every input and output extension is checked against the command's set
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from flcmd.errors import InputNotFoundError, UnsupportedExtensionError

# Patterns a bare directory input expands into, in this order
EXPANSION_PATTERNS = ("*.flc", "*.fl")


@dataclass(frozen=True)
class Job:
    """One (input, output) pair processed by a single command."""

    input_path: Path
    output_path: Path


@dataclass(frozen=True)
class SupportedExtensionSet:
    """
    Extensions a command accepts, without the leading dot.

    An empty string means "no extension", i.e. a directory.
    """

    inputs: tuple[str, ...]
    outputs: tuple[str, ...]

    def __post_init__(self):
        if not self.outputs:
            raise ValueError("SupportedExtensionSet needs at least one output extension")

    @staticmethod
    def _suffixes(extensions: Iterable[str]) -> set[str]:
        return {f".{ext}" if ext else "" for ext in extensions}

    def accepts_input(self, path: Path) -> bool:
        return path.suffix in self._suffixes(self.inputs)

    def accepts_output(self, path: Path) -> bool:
        return path.suffix in self._suffixes(self.outputs)

    def default_output(self, input_path: Path) -> Path:
        """Output path next to the input, using the first output extension."""
        ext = self.outputs[0]
        name = f"{input_path.stem}.{ext}" if ext else input_path.stem
        return input_path.parent / name


def expand_input_directories(inputs: Sequence[str | Path]) -> list[Path]:
    """
    Expand extension-less inputs into the program files beneath them.

    Each such input is treated as a directory and replaced by every *.flc
    file and then every *.fl file found recursively, in filesystem
    enumeration order. Only files are returned, never the directory
    itself. Inputs with an extension pass through unchanged.

    Raises:
        InputNotFoundError: If an extension-less input is not a directory
    """
    expanded = []
    for raw in inputs:
        path = Path(raw)
        if path.suffix:
            expanded.append(path)
            continue
        if not path.is_dir():
            raise InputNotFoundError(f"Input directory not found: {path}")
        for pattern in EXPANSION_PATTERNS:
            expanded.extend(p for p in path.rglob(pattern) if p.is_file())
    return expanded


def resolve_job(index: int, raw_input: str | Path, outputs: Sequence[str | Path],
                extensions: SupportedExtensionSet) -> Job:
    """
    Build and validate the job at `index`.

    Raises:
        UnsupportedExtensionError: If the input or output extension is not supported
    """
    input_path = Path(raw_input).expanduser().resolve()
    if not extensions.accepts_input(input_path):
        raise UnsupportedExtensionError(input_path, input_path.suffix, extensions.inputs)

    if index < len(outputs):
        output_path = Path(outputs[index]).expanduser().resolve()
    else:
        output_path = extensions.default_output(input_path)

    if not extensions.accepts_output(output_path):
        raise UnsupportedExtensionError(output_path, output_path.suffix, extensions.outputs)

    return Job(input_path=input_path, output_path=output_path)


def resolve_jobs(inputs: Sequence[str | Path], outputs: Sequence[str | Path],
                 extensions: SupportedExtensionSet) -> list[Job]:
    """
    Resolve the whole batch before anything runs.

    Extra outputs beyond the number of inputs are ignored.
    """
    return [resolve_job(i, raw, outputs, extensions) for i, raw in enumerate(inputs)]
