"""
Run FL programs on the compute backend and save the resulting images.

With save workers enabled, each rendered buffer is handed to the
FinalizationPipeline so the next program can start while the previous
image is still being encoded and written.
"""

from dataclasses import dataclass, field
from typing import Optional

from flcmd.context import FLContext
from flcmd.pipeline import FinalizationPipeline, SaveTask
from flcmd.resolver import Job, SupportedExtensionSet

DEFAULT_RESOLUTION = 256


@dataclass
class RunCommand:
    defines: list[str] = field(default_factory=list)
    warm_buffers: bool = False
    width: int = DEFAULT_RESOLUTION
    height: int = DEFAULT_RESOLUTION
    save_workers: int = 0

    name: str = field(default="run", init=False)
    extensions: SupportedExtensionSet = field(
        default=SupportedExtensionSet(inputs=("fl", "flc"), outputs=("png", "bmp")), init=False
    )
    expand_input_directories: bool = field(default=True, init=False)
    pipeline: Optional[FinalizationPipeline] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Resolution must be positive, got {self.width}x{self.height}")
        if self.save_workers < 0:
            raise ValueError(f"save_workers must be >= 0, got {self.save_workers}")

    def before_run(self, ctx: FLContext) -> None:
        self.pipeline = FinalizationPipeline(self.save_workers, poll_interval=ctx.config.save_poll_interval)
        self.pipeline.start()

    def run_job(self, ctx: FLContext, job: Job) -> None:
        compute, _ = ctx.require_backend()
        tag = f"[{self.name}]"

        if job.input_path.suffix == ".flc":
            ctx.log(tag, "Loading", 2)
            source = ctx.load_program(job.input_path)
        else:
            ctx.log(tag, "Parsing", 2)
            source = ctx.parse_program(job.input_path, self.defines)

        ctx.log(tag, "Building", 2)
        program = compute.build(source)
        input_buffer = None
        try:
            input_buffer = compute.create_buffer(self.width, self.height, "Input")
            ctx.log(tag, "Running", 2)
            program.run(input_buffer, self.warm_buffers)
            result = program.take_active_buffer()
            self.pipeline.submit(SaveTask(
                buffer=result,
                device=compute,
                source_path=job.input_path,
                dest_path=job.output_path,
            ))
        finally:
            if input_buffer is not None:
                input_buffer.release()
            program.free_resources()

    def after_run(self, ctx: FLContext) -> None:
        if self.pipeline is not None:
            self.pipeline.drain()
