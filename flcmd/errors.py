"""
Error classes for flcmd.

The error types map onto how far a failure unwinds:
- Batch-fatal: UnsupportedExtensionError, InputNotFoundError,
  InvalidCheckProfileError
- Startup-fatal: KernelDiscoveryError, BackendNotFoundError, ConfigError
- Job-local: InvalidEntryPointError (the driver skips the job)

Everything else raised while a job runs propagates out of the batch.
The CLI catches FlcmdError at the command boundary and exits with code 1.
"""


class FlcmdError(Exception):
    """Base exception for flcmd."""
    pass


class ConfigError(FlcmdError):
    """Configuration file is malformed."""
    pass


class UnsupportedExtensionError(FlcmdError):
    """
    A job's input or output extension is not supported by the command.

    Raised while the job list is resolved, before any job is dispatched,
    so a single bad path aborts the whole batch.
    """

    def __init__(self, path, extension: str, supported):
        self.path = path
        self.extension = extension
        self.supported = tuple(supported)
        shown = extension or "<none>"
        super().__init__(
            f"Extension is not supported: {shown} ({path}). "
            f"Supported: {', '.join(e or '<none>' for e in self.supported)}"
        )


class InvalidCheckProfileError(FlcmdError):
    """The program check profile could not be attached to the parser."""
    pass


class KernelDiscoveryError(FlcmdError):
    """The compute backend could not provide any executable kernel."""
    pass


class BackendNotFoundError(FlcmdError):
    """No compute backend is installed or the configured one is unknown."""
    pass


class InvalidEntryPointError(FlcmdError):
    """
    A program has no executable entry point.

    Backends raise this from ExecutableProgram.run(). The driver logs it
    and skips the job; the batch continues.
    """
    pass


class InputNotFoundError(FlcmdError):
    """A directory input does not exist. Batch-fatal, raised before any job runs."""
    pass


class ResourcePackageError(FlcmdError):
    """A resource package is malformed or cannot be activated."""
    pass
