"""Interfaces for hvctrl backends."""

from hvctrl.interfaces.commands import (
    GuestCmd,
    NicCmd,
    PowerCmd,
    SharedFolderCmd,
    SnapshotCmd,
    VmCmd,
)
from hvctrl.interfaces.process import ProcessResult, ProcessRunner

__all__ = [
    "GuestCmd",
    "NicCmd",
    "PowerCmd",
    "ProcessResult",
    "ProcessRunner",
    "SharedFolderCmd",
    "SnapshotCmd",
    "VmCmd",
]
