"""
hvctrl - Control virtual machines across hypervisors.

One set of operations (list, power, snapshots, guest commands, NICs and
shared folders) over VirtualBox, VMware (vmrun and vmrest) and Hyper-V.
"""

__version__ = "0.1.0"
__author__ = "hvctrl Team"

from hvctrl.errors import ErrorKind, VmError
from hvctrl.models import Nic, NicType, SharedFolder, Snapshot, Vm, VmPowerState

__all__ = [
    "ErrorKind",
    "Nic",
    "NicType",
    "SharedFolder",
    "Snapshot",
    "Vm",
    "VmError",
    "VmPowerState",
    "__version__",
]
