"""
Batch command driver.

Every batch command (parse, run, pack, unpack) goes through the same
lifecycle:

    Created -> Initializing -> Validating -> Dispatching -> Draining -> Terminated

1. Build the FLContext (logging, resources, backend, kernels)
2. command.before_run()
3. Expand directory inputs (if the command asks for it)
4. Resolve every job; any unsupported extension aborts before a job runs
5. Dispatch jobs in input order; a missing entry point skips one job
6. command.after_run(), also when a job raised

Commands are plain objects satisfying the Command protocol; the driver
holds no command-specific state.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol, Sequence, runtime_checkable

from flcmd.backend import CheckProfile
from flcmd.context import FLContext
from flcmd.errors import InvalidEntryPointError
from flcmd.resolver import Job, SupportedExtensionSet, expand_input_directories, resolve_jobs
from flcmd.utils import format_duration

logger = logging.getLogger(__name__)


@runtime_checkable
class Command(Protocol):
    """Capabilities a batch command provides to the driver."""

    name: str
    extensions: SupportedExtensionSet
    expand_input_directories: bool

    def before_run(self, ctx: FLContext) -> None:
        ...

    def run_job(self, ctx: FLContext, job: Job) -> None:
        ...

    def after_run(self, ctx: FLContext) -> None:
        ...


class DriverState(str, Enum):
    CREATED = "created"
    INITIALIZING = "initializing"
    VALIDATING = "validating"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    TERMINATED = "terminated"


@dataclass
class BatchRequest:
    """Flags shared by every batch command."""

    inputs: Sequence[str | Path] = ()
    outputs: Sequence[str | Path] = ()
    no_dialogs: bool = False
    verbosity: int = 1
    checks: CheckProfile = CheckProfile.INPUT_VALIDATION


@dataclass
class BatchResult:
    """Outcome of a batch."""

    jobs: list[Job] = field(default_factory=list)
    completed: list[Job] = field(default_factory=list)
    skipped: list[Job] = field(default_factory=list)
    duration_seconds: float = 0.0


ContextFactory = Callable[[BatchRequest], FLContext]


class CommandDriver:
    """
    Runs one batch command over a list of jobs.

    The driver is single-threaded: jobs never run concurrently. Any
    concurrency lives inside the command (the run command's save workers).
    """

    def __init__(self, context_factory: ContextFactory):
        self.context_factory = context_factory
        self.state = DriverState.CREATED

    def run(self, command: Command, request: BatchRequest) -> BatchResult:
        """
        Run the full lifecycle for `command`.

        Raises:
            UnsupportedExtensionError: If any job has an unsupported extension
            Exception: Anything a job raises other than InvalidEntryPointError
        """
        start_time = time.time()
        result = BatchResult()

        self.state = DriverState.INITIALIZING
        ctx = self.context_factory(request)

        tag = f"[{command.name}]"
        command.before_run(ctx)
        try:
            inputs = list(request.inputs)
            if command.expand_input_directories:
                inputs = expand_input_directories(inputs)

            self.state = DriverState.VALIDATING
            result.jobs = resolve_jobs(inputs, list(request.outputs), command.extensions)
            if not result.jobs:
                logger.warning(f"{tag} No input files")

            self.state = DriverState.DISPATCHING
            total = len(result.jobs)
            for i, job in enumerate(result.jobs):
                ctx.set_progress(
                    tag, f"{job.input_path.name} => {job.output_path.name}", i + 1, total
                )
                try:
                    command.run_job(ctx, job)
                except InvalidEntryPointError as e:
                    logger.warning(f"{tag} No Entry Point Found in {job.input_path.name}. Skipping ({e})")
                    result.skipped.append(job)
                    continue
                result.completed.append(job)
        finally:
            self.state = DriverState.DRAINING
            command.after_run(ctx)
            self.state = DriverState.TERMINATED

        result.duration_seconds = time.time() - start_time
        logger.info(
            f"{tag} {len(result.completed)} job(s) completed, {len(result.skipped)} skipped "
            f"in {format_duration(result.duration_seconds)}",
            extra={
                "event": "batch_completed",
                "metadata": {
                    "command": command.name,
                    "completed": len(result.completed),
                    "skipped": len(result.skipped),
                },
            },
        )
        return result
