"""
Resource packages (*.flres).

A package is a zip archive:

    manifest.yaml      name, unpack_config, files
    files/<relpath>    package contents

Packages are activated (unpacked) by the unpacker registered under the
package's unpack_config name. flcmd registers:
- default: copy files verbatim
- fl2flc:  serialize *.fl sources to *.flc, copy everything else
- fl2tex:  run *.fl / *.flc programs and write *.png, copy everything else
"""

import logging
import shutil
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Protocol

import yaml

from flcmd.context import FLContext
from flcmd.errors import ResourcePackageError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.yaml"
FILES_PREFIX = "files/"
DEFAULT_UNPACK_CONFIG = "default"


@dataclass
class ResourcePackage:
    """A loaded package (manifest only; contents stay in the archive)."""

    name: str
    unpack_config: str
    path: Path
    files: list[str] = field(default_factory=list)


class Unpacker(Protocol):
    """Writes the contents of an extracted package into a target directory."""

    name: str

    def unpack(self, source_dir: Path, target_dir: Path) -> list[Path]:
        ...


def _is_safe_member(relpath: str) -> bool:
    parts = PurePosixPath(relpath).parts
    return bool(parts) and not PurePosixPath(relpath).is_absolute() and ".." not in parts


def create_package(source_dir: Path, output: Path, name: str,
                   unpack_config: str = DEFAULT_UNPACK_CONFIG) -> ResourcePackage:
    """Archive every file under `source_dir` into a .flres package."""
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise ResourcePackageError(f"Package source is not a directory: {source_dir}")

    files = sorted(p.relative_to(source_dir).as_posix() for p in source_dir.rglob("*") if p.is_file())
    manifest = {"name": name, "unpack_config": unpack_config, "files": files}

    output.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(MANIFEST_NAME, yaml.safe_dump(manifest, sort_keys=False))
        for rel in files:
            archive.write(source_dir / rel, FILES_PREFIX + rel)

    logger.debug(f"[pack] Wrote {len(files)} file(s) to {output}")
    return ResourcePackage(name=name, unpack_config=unpack_config, path=output, files=files)


class ResourceManager:
    """Loads packages and activates them with registered unpackers."""

    def __init__(self):
        self.unpackers: dict[str, Unpacker] = {}

    def add_unpacker(self, unpacker: Unpacker) -> None:
        self.unpackers[unpacker.name] = unpacker

    def load(self, path: Path) -> ResourcePackage:
        """
        Read a package manifest.

        Raises:
            ResourcePackageError: If the file is not a valid package
        """
        try:
            with zipfile.ZipFile(path) as archive:
                raw = yaml.safe_load(archive.read(MANIFEST_NAME))
        except (zipfile.BadZipFile, KeyError, yaml.YAMLError) as e:
            raise ResourcePackageError(f"Invalid resource package {path}: {e}")

        if not isinstance(raw, dict) or "name" not in raw:
            raise ResourcePackageError(f"Invalid manifest in {path}")

        files = [str(f) for f in raw.get("files") or []]
        unsafe = [f for f in files if not _is_safe_member(f)]
        if unsafe:
            raise ResourcePackageError(f"Package {path} contains unsafe paths: {unsafe}")

        return ResourcePackage(
            name=str(raw["name"]),
            unpack_config=str(raw.get("unpack_config") or DEFAULT_UNPACK_CONFIG),
            path=Path(path),
            files=files,
        )

    def activate(self, package: ResourcePackage, target_dir: Path) -> list[Path]:
        """Unpack `package` into `target_dir` with its configured unpacker."""
        unpacker = self.unpackers.get(package.unpack_config)
        if unpacker is None:
            raise ResourcePackageError(
                f"No unpacker for config '{package.unpack_config}' "
                f"(available: {', '.join(sorted(self.unpackers)) or 'none'})"
            )

        target_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="flcmd-unpack-") as tmp:
            staging = Path(tmp)
            with zipfile.ZipFile(package.path) as archive:
                for rel in package.files:
                    dest = staging / rel
                    dest.parent.mkdir(parents=True, exist_ok=True)
                    dest.write_bytes(archive.read(FILES_PREFIX + rel))
            written = unpacker.unpack(staging, target_dir)

        logger.info(f"[unpack] {package.name}: {len(written)} file(s) via '{unpacker.name}'")
        return written


class CopyUnpacker:
    """Copies package files verbatim."""

    name = DEFAULT_UNPACK_CONFIG

    def unpack(self, source_dir: Path, target_dir: Path) -> list[Path]:
        written = []
        for file in sorted(p for p in source_dir.rglob("*") if p.is_file()):
            written.append(self._copy(file, source_dir, target_dir))
        return written

    @staticmethod
    def _copy(file: Path, source_dir: Path, target_dir: Path) -> Path:
        dest = target_dir / file.relative_to(source_dir)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(file, dest)
        return dest


class FL2FLCUnpacker(CopyUnpacker):
    """Serializes *.fl sources into *.flc while unpacking."""

    name = "fl2flc"

    def __init__(self, ctx: FLContext):
        self.ctx = ctx

    def unpack(self, source_dir: Path, target_dir: Path) -> list[Path]:
        written = []
        for file in sorted(p for p in source_dir.rglob("*") if p.is_file()):
            if file.suffix != ".fl":
                written.append(self._copy(file, source_dir, target_dir))
                continue
            dest = (target_dir / file.relative_to(source_dir)).with_suffix(".flc")
            program = self.ctx.parse_program(file)
            self.ctx.save_program(dest, program)
            written.append(dest)
        return written


class FL2TexUnpacker(CopyUnpacker):
    """Runs *.fl / *.flc programs and writes the result as *.png."""

    name = "fl2tex"

    def __init__(self, ctx: FLContext, width: int = 256, height: int = 256):
        self.ctx = ctx
        self.width = width
        self.height = height

    def unpack(self, source_dir: Path, target_dir: Path) -> list[Path]:
        compute, _ = self.ctx.require_backend()
        written = []
        for file in sorted(p for p in source_dir.rglob("*") if p.is_file()):
            if file.suffix not in (".fl", ".flc"):
                written.append(self._copy(file, source_dir, target_dir))
                continue

            source = self.ctx.load_program(file) if file.suffix == ".flc" else self.ctx.parse_program(file)
            program = compute.build(source)
            buffer = None
            try:
                buffer = compute.create_buffer(self.width, self.height, "Input")
                program.run(buffer)
                result = program.take_active_buffer()
                dest = (target_dir / file.relative_to(source_dir)).with_suffix(".png")
                dest.parent.mkdir(parents=True, exist_ok=True)
                try:
                    compute.write_image(result, dest)
                finally:
                    result.release()
                written.append(dest)
            finally:
                if buffer is not None:
                    buffer.release()
                program.free_resources()
        return written
