"""
flcmd - Command harness for FL programs

Parses, runs, packs and unpacks FL programs against a pluggable compute
backend, and records package/repository changes for the next startup.
"""

__version__ = "0.3.0"
__author__ = "OpenFL Tools Team"


__all__ = ["FlcmdConfig", "load_config", "get_flcmd_home"]

from .config import FlcmdConfig, load_config, get_flcmd_home
