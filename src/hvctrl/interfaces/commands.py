"""Capability interfaces implemented by hypervisor backends.

A backend implements only the interfaces it genuinely supports. An
operation that the backend cannot perform raises
``VmError(ErrorKind.UNSUPPORTED_COMMAND)``.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

from hvctrl.errors import ErrorKind, VmError
from hvctrl.models import Nic, SharedFolder, Snapshot, Vm, VmPowerState


class VmCmd(ABC):
    """Enumerate VMs and select the one the adapter controls."""

    @abstractmethod
    def list_vms(self) -> List[Vm]:
        """List VMs known to the backend."""
        pass

    @abstractmethod
    def set_vm_by_id(self, id: str) -> None:
        """Select the VM whose id is ``id``. The id type depends on the backend."""
        pass

    @abstractmethod
    def set_vm_by_name(self, name: str) -> None:
        """Select the VM whose display name is ``name``."""
        pass

    @abstractmethod
    def set_vm_by_path(self, path: str) -> None:
        """Select the VM whose configuration file is ``path``."""
        pass

    def find_vm(self, predicate: Callable[[Vm], bool]) -> Vm:
        """Return the first listed VM matching ``predicate`` or raise VmNotFound."""
        for vm in self.list_vms():
            if predicate(vm):
                return vm
        raise VmError(ErrorKind.VM_NOT_FOUND)


class PowerCmd(ABC):
    """Power lifecycle of the selected VM.

    Every transition is safe to call from the wrong state: a backend reports
    ``InvalidPowerState(<observed state>)`` instead of failing obscurely.
    ``timeout`` is in seconds; ``None`` waits indefinitely.
    """

    @abstractmethod
    def start(self) -> None:
        pass

    @abstractmethod
    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the VM gracefully (usually an ACPI shutdown) and wait for it."""
        pass

    @abstractmethod
    def hard_stop(self) -> None:
        """Power the VM off and confirm it is off, without polling."""
        pass

    @abstractmethod
    def suspend(self) -> None:
        pass

    @abstractmethod
    def resume(self) -> None:
        pass

    @abstractmethod
    def is_running(self) -> bool:
        pass

    @abstractmethod
    def power_state(self) -> VmPowerState:
        """Observe the current power state."""
        pass

    @abstractmethod
    def reboot(self, timeout: Optional[float] = None) -> None:
        """Stop gracefully, then start; ``timeout`` covers both halves."""
        pass

    @abstractmethod
    def hard_reboot(self) -> None:
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def unpause(self) -> None:
        pass


class SnapshotCmd(ABC):
    """Snapshot management of the selected VM."""

    @abstractmethod
    def list_snapshots(self) -> List[Snapshot]:
        pass

    @abstractmethod
    def take_snapshot(self, name: str) -> None:
        pass

    @abstractmethod
    def revert_snapshot(self, name: str) -> None:
        """Revert to ``name``. Raises SnapshotNotFound if it does not exist."""
        pass

    @abstractmethod
    def delete_snapshot(self, name: str) -> None:
        """Delete ``name``. Raises SnapshotNotFound if it does not exist."""
        pass

    def has_snapshot(self, name: str) -> bool:
        return any(sn.name == name for sn in self.list_snapshots())

    def ensure_snapshot(self, name: str) -> None:
        if not self.has_snapshot(name):
            raise VmError(ErrorKind.SNAPSHOT_NOT_FOUND)


class GuestCmd(ABC):
    """Operations inside the guest OS."""

    @abstractmethod
    def exec_cmd(self, guest_args: Sequence[str]) -> None:
        pass

    @abstractmethod
    def copy_from_guest_to_host(self, from_guest_path: str, to_host_path: str) -> None:
        pass

    @abstractmethod
    def copy_from_host_to_guest(self, from_host_path: str, to_guest_path: str) -> None:
        pass


class NicCmd(ABC):
    """Virtual NIC management."""

    @abstractmethod
    def list_nics(self) -> List[Nic]:
        pass

    @abstractmethod
    def add_nic(self, nic: Nic) -> None:
        pass

    @abstractmethod
    def update_nic(self, nic: Nic) -> None:
        pass

    @abstractmethod
    def remove_nic(self, nic: Nic) -> None:
        pass


class SharedFolderCmd(ABC):
    """Shared folder management."""

    @abstractmethod
    def list_shared_folders(self) -> List[SharedFolder]:
        pass

    @abstractmethod
    def mount_shared_folder(self, shared_folder: SharedFolder) -> None:
        pass

    @abstractmethod
    def unmount_shared_folder(self, shared_folder: SharedFolder) -> None:
        pass

    @abstractmethod
    def delete_shared_folder(self, shared_folder: SharedFolder) -> None:
        pass
