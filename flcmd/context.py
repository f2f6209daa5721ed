"""
Runtime context shared by the driver and every command.

FLContext carries what commands need from startup: configuration, the
compute backend, the program codec, the check profile and how to talk to
the user (progress lines, confirmation dialogs). It is built once per
process by initialize_context() or, for commands that only touch the
package system, initialize_plugin_system().
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

import click

from flcmd.backend import BackendBundle, CheckProfile, ComputeBackend, ProgramCodec, load_backend
from flcmd.config import FlcmdConfig
from flcmd.errors import FlcmdError, InvalidCheckProfileError, KernelDiscoveryError
from flcmd.utils import LOGGER_NAME, progress_prefix, setup_logging, severity_to_level

logger = logging.getLogger(__name__)

KERNEL_PATTERN = "*.cl"


@dataclass
class KernelDiscoveryResult:
    """Summary of kernel compilation at startup."""

    files: list[Path] = field(default_factory=list)
    kernel_count: int = 0
    failures: dict[Path, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.kernel_count > 0


@dataclass
class FLContext:
    """Explicit replacement for process-wide state."""

    config: FlcmdConfig
    compute: Optional[ComputeBackend] = None
    codec: Optional[ProgramCodec] = None
    checks: CheckProfile = CheckProfile.INPUT_VALIDATION
    no_dialogs: bool = False
    verbosity: int = 1
    kernels: Optional[KernelDiscoveryResult] = None
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(LOGGER_NAME))
    _checks_attached: bool = field(default=False, repr=False)

    def log(self, tag: str, message: str, severity: int = 1) -> None:
        self.logger.log(severity_to_level(severity), f"{tag}{message}")

    def set_progress(self, tag: str, status: str, current: int, total: int, severity: int = 1) -> None:
        """Report a `[tag][Progress][current/total] status` line."""
        self.log(progress_prefix(tag, current, total), f" {status}", severity)

    def show_dialog(self, tag: str, title: str, message: str) -> bool:
        """Ask a yes/no question. Always yes when dialogs are suppressed."""
        if self.no_dialogs:
            return True
        self.log(f"{tag}[DIALOG]", f"{title}", 0)
        return click.confirm(message, default=True)

    def require_backend(self) -> tuple[ComputeBackend, ProgramCodec]:
        if self.compute is None or self.codec is None:
            raise FlcmdError("This command needs a compute backend, but none was initialized")
        return self.compute, self.codec

    def ensure_checks_attached(self) -> None:
        """Attach the check profile to the parser on first use."""
        if self._checks_attached:
            return
        _, codec = self.require_backend()
        if not codec.attach_checks(self.checks):
            raise InvalidCheckProfileError(
                f"Check profile '{self.checks.value}' contains invalid checks"
            )
        self._checks_attached = True

    def parse_program(self, path: Path, defines: Sequence[str] = ()) -> Any:
        self.ensure_checks_attached()
        _, codec = self.require_backend()
        return codec.parse(path, list(defines))

    def save_program(self, path: Path, program: Any, extra_steps: Sequence[str] = ()) -> None:
        _, codec = self.require_backend()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as stream:
            codec.save(stream, program, list(extra_steps))

    def load_program(self, path: Path) -> Any:
        _, codec = self.require_backend()
        with open(path, "rb") as stream:
            return codec.load(stream)


def discover_kernels(compute: ComputeBackend, kernel_dir: Path,
                     report: Optional[Callable[[str, int], None]] = None) -> KernelDiscoveryResult:
    """
    Compile every kernel file under `kernel_dir`.

    A file that fails to compile is logged and recorded; discovery goes on.

    Raises:
        KernelDiscoveryError: If no executable kernel was compiled at all
    """
    report = report or (lambda message, severity: None)
    result = KernelDiscoveryResult()

    report(f"Discovering Files in Path: {kernel_dir}", 1)
    if kernel_dir.is_dir():
        result.files = sorted(kernel_dir.rglob(KERNEL_PATTERN))
    if not result.files:
        report(f"Error: No Files found at path: {kernel_dir}", 1)

    for i, file in enumerate(result.files):
        report(f"[{i}/{len(result.files)}]Loading: {file.name} ({result.kernel_count})", 2)
        try:
            result.kernel_count += compute.compile_kernel_file(file)
        except Exception as e:
            result.failures[file] = str(e)
            logger.warning(f"[CL-KERNELS]ERROR: {file.name}: {e}")

    report(f"Kernels Loaded: {result.kernel_count}", 1)
    if result.failures:
        logger.warning(f"[CL-KERNELS]{len(result.failures)} kernel file(s) failed to compile")

    if not result.ok:
        raise KernelDiscoveryError(
            f"Backend '{compute.name}' has no executable kernels (searched {kernel_dir})"
        )
    return result


def initialize_plugin_system(config: FlcmdConfig, verbosity: int = 1, no_dialogs: bool = False) -> FLContext:
    """Bring up logging and the package system only."""
    total = 2
    setup_logging(verbosity, config.log_file)
    ctx = FLContext(config=config, no_dialogs=no_dialogs, verbosity=verbosity)

    ctx.set_progress("[Setup]", "Initializing Logging System", 1, total)
    ctx.set_progress("[Setup]", "Initializing Resource System", 2, total)
    config.home.mkdir(parents=True, exist_ok=True)
    return ctx


def initialize_context(config: FlcmdConfig, verbosity: int = 1, no_dialogs: bool = False,
                       checks: CheckProfile = CheckProfile.INPUT_VALIDATION,
                       backend_loader: Callable[[FlcmdConfig], BackendBundle] = load_backend) -> FLContext:
    """
    Full startup for batch commands.

    Raises:
        BackendNotFoundError: If no backend can be loaded
        KernelDiscoveryError: If the backend compiles no kernel
    """
    total = 5
    setup_logging(verbosity, config.log_file)
    ctx = FLContext(config=config, checks=checks, no_dialogs=no_dialogs, verbosity=verbosity)

    ctx.set_progress("[Setup]", "Initializing Logging System", 1, total)

    ctx.set_progress("[Setup]", "Initializing Resource System", 2, total)
    config.home.mkdir(parents=True, exist_ok=True)

    ctx.set_progress("[Setup]", "Initializing Plugin System", 3, total)
    bundle = backend_loader(config)
    ctx.compute = bundle.compute
    ctx.codec = bundle.codec

    ctx.set_progress("[Setup]", "Initializing FL", 4, total)
    ctx.kernels = discover_kernels(
        ctx.compute,
        config.kernel_dir,
        report=lambda message, severity: ctx.log("[CL-KERNELS]", message, severity),
    )

    ctx.set_progress("[Setup]", "Finished", 5, total)
    return ctx
