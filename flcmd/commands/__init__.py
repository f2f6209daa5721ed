"""Batch commands run by the CommandDriver.

Each command is a plain object satisfying flcmd.driver.Command:
- ParseCommand: *.fl -> *.flc
- RunCommand: *.fl / *.flc -> *.png / *.bmp
- PackCommand: directory -> *.flres
- UnpackCommand: *.flres -> directory
"""

from flcmd.commands.pack import PackCommand
from flcmd.commands.parse import ParseCommand
from flcmd.commands.run import RunCommand
from flcmd.commands.unpack import UnpackCommand

__all__ = ["PackCommand", "ParseCommand", "RunCommand", "UnpackCommand"]
