"""Parse FL sources and write them in the serialized program format."""

from dataclasses import dataclass, field

from flcmd.context import FLContext
from flcmd.resolver import Job, SupportedExtensionSet


@dataclass
class ParseCommand:
    defines: list[str] = field(default_factory=list)
    extra_steps: list[str] = field(default_factory=list)

    name: str = field(default="parse", init=False)
    extensions: SupportedExtensionSet = field(
        default=SupportedExtensionSet(inputs=("fl",), outputs=("flc",)), init=False
    )
    expand_input_directories: bool = field(default=False, init=False)

    def before_run(self, ctx: FLContext) -> None:
        pass

    def run_job(self, ctx: FLContext, job: Job) -> None:
        ctx.log(f"[{self.name}]", "Parsing", 2)
        program = ctx.parse_program(job.input_path, self.defines)
        ctx.log(f"[{self.name}]", "Serializing", 2)
        ctx.save_program(job.output_path, program, self.extra_steps)

    def after_run(self, ctx: FLContext) -> None:
        pass
