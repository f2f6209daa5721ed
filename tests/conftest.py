"""Shared fixtures: an in-memory compute backend and program codec."""

import json
import logging
from pathlib import Path

import pytest

from flcmd.backend import BackendBundle, CheckProfile
from flcmd.config import FlcmdConfig
from flcmd.context import FLContext
from flcmd.errors import InvalidEntryPointError


class FakeBuffer:
    def __init__(self, width, height, name="buffer"):
        self.width = width
        self.height = height
        self.name = name
        self.release_count = 0

    @property
    def released(self):
        return self.release_count > 0

    def release(self):
        self.release_count += 1


class FakeProgram:
    """Built program. Sources containing NO_ENTRY have no entry point."""

    def __init__(self, compute, source):
        self.compute = compute
        self.source = source
        self.active = None
        self.freed = False
        self.warm_buffers = None

    def run(self, input_buffer, warm_buffers=False):
        if "NO_ENTRY" in self.source.get("text", ""):
            raise InvalidEntryPointError(f"no entry point in {self.source['path']}")
        self.warm_buffers = warm_buffers
        self.active = self.compute.create_buffer(input_buffer.width, input_buffer.height, "Result")

    def take_active_buffer(self):
        buffer, self.active = self.active, None
        return buffer

    def free_resources(self):
        self.freed = True
        if self.active is not None:
            self.active.release()


class FakeCompute:
    name = "fake"

    def __init__(self, kernels_per_file=1):
        self.kernels_per_file = kernels_per_file
        self.compiled = []
        self.buffers = []
        self.programs = []
        self.written = []

    def compile_kernel_file(self, path):
        if "broken" in path.name:
            raise RuntimeError("build failed")
        self.compiled.append(path)
        return self.kernels_per_file

    def create_buffer(self, width, height, name):
        buffer = FakeBuffer(width, height, name)
        self.buffers.append(buffer)
        return buffer

    def build(self, program):
        built = FakeProgram(self, program)
        self.programs.append(built)
        return built

    def write_image(self, buffer, path):
        if buffer.released:
            raise RuntimeError("buffer already released")
        path.write_bytes(f"IMG {buffer.width}x{buffer.height}".encode())
        self.written.append(path)


class FakeCodec:
    """Programs are dicts; the serialized form is JSON."""

    def __init__(self, accept_checks=True):
        self.accept_checks = accept_checks
        self.attached = []

    def attach_checks(self, profile):
        self.attached.append(profile)
        return self.accept_checks

    def parse(self, path, defines):
        return {"path": str(path), "text": Path(path).read_text(), "defines": list(defines)}

    def save(self, stream, program, extra_steps):
        stream.write(json.dumps({**program, "extra_steps": list(extra_steps)}).encode())

    def load(self, stream):
        return json.loads(stream.read().decode())


@pytest.fixture
def config(tmp_path, monkeypatch):
    home = tmp_path / "home"
    monkeypatch.setenv("FLCMD_HOME", str(home))
    kernel_dir = home / "kernels"
    kernel_dir.mkdir(parents=True)
    (kernel_dir / "blur.cl").write_text("kernel void blur() {}")
    return FlcmdConfig(home=home, save_poll_interval=0.01)


@pytest.fixture
def compute():
    return FakeCompute()


@pytest.fixture
def codec():
    return FakeCodec()


@pytest.fixture
def bundle(compute, codec):
    return BackendBundle(compute=compute, codec=codec)


@pytest.fixture
def ctx(config, compute, codec):
    return FLContext(
        config=config,
        compute=compute,
        codec=codec,
        checks=CheckProfile.INPUT_VALIDATION,
        no_dialogs=True,
    )


@pytest.fixture(autouse=True)
def reset_flcmd_logger():
    """setup_logging() replaces handlers on the shared logger; undo it after each test."""
    logger = logging.getLogger("flcmd")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers = handlers
    logger.setLevel(level)
