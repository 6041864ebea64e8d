"""Hypervisor backend adapters."""

from hvctrl.backends.hypervcmd import HyperVCmd
from hvctrl.backends.subprocess_runner import SubprocessRunner
from hvctrl.backends.vboxmanage import VBoxManage
from hvctrl.backends.vmrest import VmRest
from hvctrl.backends.vmrun import VmRun

__all__ = ["HyperVCmd", "SubprocessRunner", "VBoxManage", "VmRest", "VmRun"]
