"""Unpack .flres resource packages into directories."""

from dataclasses import dataclass, field
from typing import Optional

from flcmd.context import FLContext
from flcmd.resolver import Job, SupportedExtensionSet
from flcmd.resources import CopyUnpacker, FL2FLCUnpacker, FL2TexUnpacker, ResourceManager


@dataclass
class UnpackCommand:
    name: str = field(default="unpack", init=False)
    extensions: SupportedExtensionSet = field(
        default=SupportedExtensionSet(inputs=("flres",), outputs=("",)), init=False
    )
    expand_input_directories: bool = field(default=False, init=False)
    manager: Optional[ResourceManager] = field(default=None, init=False, repr=False)

    def before_run(self, ctx: FLContext) -> None:
        self.manager = ResourceManager()
        self.manager.add_unpacker(CopyUnpacker())
        self.manager.add_unpacker(FL2FLCUnpacker(ctx))
        self.manager.add_unpacker(FL2TexUnpacker(ctx))

    def run_job(self, ctx: FLContext, job: Job) -> None:
        package = self.manager.load(job.input_path)
        ctx.log(f"[{self.name}]", f"Activating {package.name} ({package.unpack_config})", 2)
        self.manager.activate(package, job.output_path)

    def after_run(self, ctx: FLContext) -> None:
        pass
