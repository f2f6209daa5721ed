"""
Pack a directory into a .flres resource package.

With --export-fl the directory is first copied to a staging area where
every *.fl source is serialized to a sibling *.flc; the sources are
removed from the staging copy unless --keep-fl is given. The input
directory itself is never modified.
"""

import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from flcmd.context import FLContext
from flcmd.resolver import Job, SupportedExtensionSet
from flcmd.resources import DEFAULT_UNPACK_CONFIG, create_package

DEFAULT_PACKAGE_NAME = "NO_NAME"


@dataclass
class PackCommand:
    defines: list[str] = field(default_factory=list)
    extra_steps: list[str] = field(default_factory=list)
    export_fl: bool = False
    keep_fl: bool = False
    package_name: str = DEFAULT_PACKAGE_NAME
    unpack_config: str = DEFAULT_UNPACK_CONFIG

    name: str = field(default="pack", init=False)
    extensions: SupportedExtensionSet = field(
        default=SupportedExtensionSet(inputs=("",), outputs=("flres",)), init=False
    )
    expand_input_directories: bool = field(default=False, init=False)

    def before_run(self, ctx: FLContext) -> None:
        pass

    def run_job(self, ctx: FLContext, job: Job) -> None:
        tag = f"[{self.name}]"
        if not self.export_fl:
            ctx.set_progress(tag, "Creating Package.", 1, 1)
            create_package(job.input_path, job.output_path, self.package_name, self.unpack_config)
            return

        with tempfile.TemporaryDirectory(prefix=f"temp_{job.input_path.name}_") as tmp:
            staging = Path(tmp) / job.input_path.name
            shutil.copytree(job.input_path, staging)
            sources = sorted(staging.rglob("*.fl"))

            total = len(sources) + 3
            current = 1
            ctx.set_progress(tag, "Exporting FL Scripts..", current, total)
            for source in sources:
                current += 1
                ctx.set_progress(tag, f"Exporting File: {source.relative_to(staging)}", current, total, severity=2)
                program = ctx.parse_program(source, self.defines)
                ctx.save_program(source.with_suffix(".flc"), program, self.extra_steps)
                if not self.keep_fl:
                    source.unlink()

            current += 1
            ctx.set_progress(tag, "Creating Package.", current, total)
            create_package(staging, job.output_path, self.package_name, self.unpack_config)

            current += 1
            ctx.set_progress(tag, "Cleaning Up.", current, total)

    def after_run(self, ctx: FLContext) -> None:
        pass
