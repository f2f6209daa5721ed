"""Backend protocols and discovery for flcmd.

This module defines the narrow contracts flcmd uses to reach the systems it
drives without owning them:
- PixelBuffer: image buffer owned by whichever side holds it
- ExecutableProgram: a built program bound to the compute device
- ComputeBackend: kernel compilation, buffers, execution, image write-back
- ProgramCodec: parse source programs, save/load serialized programs

Backends are installed packages that register a factory under the
`flcmd.backends` entry-point group:

    [project.entry-points."flcmd.backends"]
    opencl = "flcl.backend:create_backend"

The factory receives the FlcmdConfig and returns a BackendBundle.
"""

import importlib
import logging
from dataclasses import dataclass
from enum import Enum
from importlib.metadata import entry_points
from pathlib import Path
from typing import Any, BinaryIO, Callable, Protocol, Sequence, runtime_checkable

from flcmd.config import FlcmdConfig
from flcmd.errors import BackendNotFoundError

logger = logging.getLogger(__name__)

BACKEND_ENTRY_POINT_GROUP = "flcmd.backends"


class CheckProfile(str, Enum):
    """Program validation profile attached to the parser."""

    NONE = "none"
    INPUT_VALIDATION = "input-validation"
    OPTIMIZATIONS = "optimizations"
    ALL = "all"

    @classmethod
    def names(cls) -> list[str]:
        return [p.value for p in cls]


@runtime_checkable
class PixelBuffer(Protocol):
    """Device- or host-resident pixel buffer."""

    width: int
    height: int

    @property
    def released(self) -> bool:
        """True once release() has been called."""
        ...

    def release(self) -> None:
        """Free the underlying memory. Safe to call more than once."""
        ...


@runtime_checkable
class ExecutableProgram(Protocol):
    """A program built against a compute backend."""

    def run(self, input_buffer: PixelBuffer, warm_buffers: bool = False) -> None:
        """
        Execute the program from its entry point.

        Raises:
            InvalidEntryPointError: If the program has no entry point
        """
        ...

    def take_active_buffer(self) -> PixelBuffer:
        """Detach the active (result) buffer; the caller becomes its owner."""
        ...

    def free_resources(self) -> None:
        """Release every buffer still owned by the program."""
        ...


@runtime_checkable
class ComputeBackend(Protocol):
    """Compute device context, shared read-mostly across threads."""

    name: str

    def compile_kernel_file(self, path: Path) -> int:
        """
        Compile one kernel source file.

        Returns:
            Number of kernels contained in the file

        Raises:
            Exception: If the file fails to compile
        """
        ...

    def create_buffer(self, width: int, height: int, name: str) -> PixelBuffer:
        ...

    def build(self, program: Any) -> ExecutableProgram:
        """Bind a serialized program to this device."""
        ...

    def write_image(self, buffer: PixelBuffer, path: Path) -> None:
        """Read the buffer back and encode it as an image (format by suffix)."""
        ...


@runtime_checkable
class ProgramCodec(Protocol):
    """Parser and serializer for FL programs."""

    def attach_checks(self, profile: CheckProfile) -> bool:
        """Attach a validation profile; False if the profile has invalid checks."""
        ...

    def parse(self, path: Path, defines: Sequence[str]) -> Any:
        ...

    def save(self, stream: BinaryIO, program: Any, extra_steps: Sequence[str]) -> None:
        ...

    def load(self, stream: BinaryIO) -> Any:
        ...


@dataclass
class BackendBundle:
    """What a backend factory returns."""

    compute: ComputeBackend
    codec: ProgramCodec


def discover_backends() -> dict[str, Callable[[FlcmdConfig], BackendBundle]]:
    """
    Discover backend factories from the flcmd.backends entry points.

    Returns:
        {"opencl": <factory>, ...}
    """
    factories = {}
    eps = entry_points()
    for ep in eps.select(group=BACKEND_ENTRY_POINT_GROUP):
        factories[ep.name] = ep.load()
    return factories


def load_factory(factory_path: str) -> Callable[[FlcmdConfig], BackendBundle]:
    """Load a backend factory given as 'module:function'."""
    module_path, _, func_name = factory_path.partition(":")
    if not module_path or not func_name:
        raise BackendNotFoundError(
            f"Backend path must be 'module:function', got: {factory_path}"
        )

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise BackendNotFoundError(f"Cannot import backend module '{module_path}': {e}") from e

    factory = getattr(module, func_name, None)
    if not callable(factory):
        raise BackendNotFoundError(f"{factory_path} is not a callable backend factory")
    return factory


def load_backend(config: FlcmdConfig) -> BackendBundle:
    """
    Instantiate the configured backend.

    `config.backend` may name an entry point, give a 'module:function'
    path, or be unset (the only installed backend is used, or the first
    one by name when several are installed).

    Raises:
        BackendNotFoundError: If nothing matches
    """
    selector = config.backend

    if selector and ":" in selector:
        factory = load_factory(selector)
        name = selector
    else:
        available = discover_backends()
        if not available:
            raise BackendNotFoundError(
                f"No compute backend installed (entry-point group '{BACKEND_ENTRY_POINT_GROUP}')"
            )
        if selector:
            if selector not in available:
                raise BackendNotFoundError(
                    f"Unknown backend: {selector}. Available: {', '.join(sorted(available))}"
                )
            name = selector
        else:
            name = sorted(available)[0]
            if len(available) > 1:
                logger.warning(f"Several backends installed, using '{name}'")
        factory = available[name]

    logger.debug(f"Loading backend: {name}")
    return factory(config)
