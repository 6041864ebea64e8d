"""VMware Workstation/Player/Fusion backend driven through vmrun."""

import os
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

import structlog

from ..convergence import PowerConvergence
from ..errors import ErrorKind, VmError
from ..interfaces.commands import GuestCmd, PowerCmd, SharedFolderCmd, SnapshotCmd, VmCmd
from ..interfaces.process import ProcessRunner
from ..logging import log_operation, mask_args
from ..models import ProcessInfo, SharedFolder, Snapshot, Vm, VmPowerState
from ..parsers import (
    parse_directory_listing,
    parse_guest_processes,
    parse_running_vms,
    parse_vmrun_snapshots,
    parse_vmrun_version,
    read_vmware_file,
)
from ..translators import check_vmrun
from .subprocess_runner import SubprocessRunner

log = structlog.get_logger(__name__)


class HostType(str, Enum):
    PLAYER = "player"
    WORKSTATION = "ws"
    FUSION = "fusion"


class VariableType(str, Enum):
    """Variable namespaces of ``readVariable`` / ``writeVariable``."""

    GUEST_VAR = "guestVar"
    RUNTIME_CONFIG = "runtimeConfig"
    GUEST_ENV = "guestEnv"


def default_inventory_path(host_type: HostType) -> Optional[Path]:
    """Where VMware keeps its VM list on Windows.

    Player only remembers recently used VMs in ``preferences.ini``;
    Workstation keeps a full ``inventory.vmls``.
    """
    appdata = os.environ.get("APPDATA")
    if not appdata:
        return None
    name = "preferences.ini" if host_type is HostType.PLAYER else "inventory.vmls"
    return Path(appdata) / "VMware" / name


class VmRun(VmCmd, PowerCmd, SnapshotCmd, GuestCmd, SharedFolderCmd):
    """VMware backend. The VM is addressed by the path of its ``.vmx`` file."""

    name = "vmrun"

    def __init__(
        self,
        executable_path: str = "vmrun",
        host_type: HostType = HostType.WORKSTATION,
        vm_path: Optional[str] = None,
        vm_password: Optional[str] = None,
        guest_username: Optional[str] = None,
        guest_password: Optional[str] = None,
        gui: bool = True,
        inventory_path: Optional[str] = None,
        runner: Optional[ProcessRunner] = None,
        convergence: Optional[PowerConvergence] = None,
    ):
        self.executable_path = executable_path
        self.host_type = HostType(host_type)
        self.vm_path = vm_path
        self.vm_password = vm_password
        self.guest_username = guest_username
        self.guest_password = guest_password
        self.gui = gui
        self.inventory_path = inventory_path
        self.runner = runner or SubprocessRunner()
        self.convergence = convergence or PowerConvergence()

    # -- plumbing -----------------------------------------------------------

    def _vm(self) -> str:
        if not self.vm_path:
            raise VmError(ErrorKind.VM_IS_NOT_SPECIFIED)
        return self.vm_path

    def _base(self) -> List[str]:
        args = [self.executable_path, "-T", self.host_type.value]
        if self.guest_username is not None:
            args += ["-gu", self.guest_username]
        if self.guest_password is not None:
            args += ["-gp", self.guest_password]
        if self.vm_password is not None:
            args += ["-vp", self.vm_password]
        return args

    def exec(self, *args: str) -> str:
        """Run vmrun; ``Error: ...`` on stderr (or stdout) raises VmError."""
        command = self._base() + list(args)
        log.debug("vmrun.exec", args=mask_args(command[1:]))
        result = self.runner.run(command)
        error = check_vmrun(result.stdout, result.stderr)
        if error is not None:
            log.debug("vmrun.error", output=(result.stderr or result.stdout).strip())
            raise error
        return result.stdout

    def exec_vm(self, command: str, *args: str) -> str:
        return self.exec(command, self._vm(), *args)

    @staticmethod
    def _mode(hard: bool) -> str:
        return "hard" if hard else "soft"

    # -- raw commands -------------------------------------------------------

    def version(self) -> str:
        # vmrun without a command prints its usage, which carries the version.
        return parse_vmrun_version(self.exec())

    def start_vm(self, gui: Optional[bool] = None) -> None:
        gui = self.gui if gui is None else gui
        self.exec_vm("start", *([] if gui else ["nogui"]))

    def stop_vm(self, hard: bool = False) -> None:
        self.exec_vm("stop", self._mode(hard))

    def reset_vm(self, hard: bool = False) -> None:
        self.exec_vm("reset", self._mode(hard))

    def suspend_vm(self, hard: bool = False) -> None:
        self.exec_vm("suspend", self._mode(hard))

    def list_running_vms(self) -> List[Vm]:
        return parse_running_vms(self.exec("list"))

    def list_all_vms(self) -> List[Vm]:
        path = self.inventory_path or default_inventory_path(self.host_type)
        if path is None:
            raise VmError(ErrorKind.INVALID_PARAMETER, detail="inventory_path")
        return read_vmware_file(path, preferences=self.host_type is HostType.PLAYER)

    def snapshot(self, name: str) -> None:
        self.exec_vm("snapshot", name)

    def delete_snapshot_with(self, name: str, delete_children: bool = False) -> None:
        self.exec_vm("deleteSnapshot", name, *(["andDeleteChildren"] if delete_children else []))

    def revert_to_snapshot(self, name: str) -> None:
        self.exec_vm("revertToSnapshot", name)

    def run_program_in_guest(
        self,
        program_args: Sequence[str],
        no_wait: bool = False,
        active_window: bool = False,
        interactive: bool = False,
    ) -> None:
        flags = []
        if no_wait:
            flags.append("-noWait")
        if active_window:
            flags.append("-activeWindow")
        if interactive:
            flags.append("-interactive")
        self.exec_vm("runProgramInGuest", *flags, *program_args)

    def _exists(self, command: str, guest_path: str, noun: str) -> bool:
        out = self.exec_vm(command, guest_path).strip()
        if out == f"The {noun} exists.":
            return True
        if out == f"The {noun} does not exist.":
            return False
        raise VmError.unexpected(out)

    def file_exists_in_guest(self, guest_path: str) -> bool:
        return self._exists("fileExistsInGuest", guest_path, "file")

    def directory_exists_in_guest(self, guest_path: str) -> bool:
        return self._exists("directoryExistsInGuest", guest_path, "directory")

    def set_shared_folder_state(self, name: str, host_path: str, writable: bool) -> None:
        self.exec_vm("setSharedFolderState", name, host_path, "writable" if writable else "readonly")

    def add_shared_folder(self, name: str, host_path: str) -> None:
        self.exec_vm("addSharedFolder", name, host_path)

    def remove_shared_folder(self, name: str) -> None:
        self.exec_vm("removeSharedFolder", name)

    def enable_shared_folders(self, runtime_only: bool = False) -> None:
        self.exec_vm("enableSharedFolders", *(["runtime"] if runtime_only else []))

    def disable_shared_folders(self, runtime_only: bool = False) -> None:
        self.exec_vm("disableSharedFolders", *(["runtime"] if runtime_only else []))

    def list_processes_in_guest(self) -> List[ProcessInfo]:
        return parse_guest_processes(self.exec_vm("listProcessesInGuest"))

    def kill_process_in_guest(self, pid: int) -> None:
        self.exec_vm("killProcessInGuest", str(pid))

    def delete_file_in_guest(self, guest_path: str) -> None:
        self.exec_vm("deleteFileInGuest", guest_path)

    def create_directory_in_guest(self, guest_path: str) -> None:
        self.exec_vm("createDirectoryInGuest", guest_path)

    def delete_directory_in_guest(self, guest_path: str) -> None:
        self.exec_vm("deleteDirectoryInGuest", guest_path)

    def create_temp_file_in_guest(self) -> str:
        """Returns the path of the new temp file."""
        return self.exec_vm("createTempFileInGuest").strip()

    def list_directory_in_guest(self, guest_path: str) -> List[str]:
        return parse_directory_listing(self.exec_vm("listDirectoryInGuest", guest_path))

    def copy_file_from_host_to_guest(self, host_path: str, guest_path: str) -> None:
        self.exec_vm("CopyFileFromHostToGuest", host_path, guest_path)

    def copy_file_from_guest_to_host(self, guest_path: str, host_path: str) -> None:
        self.exec_vm("CopyFileFromGuestToHost", guest_path, host_path)

    def rename_file_in_guest(self, old_path: str, new_path: str) -> None:
        self.exec_vm("renameFileInGuest", old_path, new_path)

    def type_keystrokes_in_guest(self, keystrokes: str) -> None:
        self.exec_vm("typeKeystrokesInGuest", keystrokes)

    def capture_screen(self, host_path: str) -> None:
        self.exec_vm("captureScreen", host_path)

    def write_variable(self, var_type: VariableType, name: str, value: str) -> None:
        self.exec_vm("writeVariable", VariableType(var_type).value, name, value)

    def read_variable(self, var_type: VariableType, name: str) -> Optional[str]:
        out = self.exec_vm("readVariable", VariableType(var_type).value, name).rstrip("\r\n")
        return out or None

    def get_guest_ip_address(self, wait: bool = False) -> str:
        return self.exec_vm("getGuestIPAddress", *(["-wait"] if wait else [])).strip()

    def install_tools(self) -> None:
        self.exec_vm("installTools")

    def check_tools_state(self) -> bool:
        """True when VMware Tools are installed or running."""
        out = self.exec_vm("checkToolsState").strip()
        if out in ("installed", "running"):
            return True
        if out == "unknown":
            return False
        raise VmError.unexpected(out)

    def delete_vm(self) -> None:
        self.exec_vm("deleteVM")

    # -- VmCmd --------------------------------------------------------------

    def list_vms(self) -> List[Vm]:
        return self.list_all_vms()

    def set_vm_by_id(self, id: str) -> None:
        # VMware VMs have no id that vmrun understands.
        raise VmError(ErrorKind.UNSUPPORTED_COMMAND)

    def set_vm_by_name(self, name: str) -> None:
        self.vm_path = self.find_vm(lambda vm: vm.name == name).path

    def set_vm_by_path(self, path: str) -> None:
        self.vm_path = self.find_vm(lambda vm: vm.path == path).path

    # -- PowerCmd -----------------------------------------------------------

    def is_running(self) -> bool:
        vm_path = self._vm()
        return any(vm.path == vm_path for vm in self.list_running_vms())

    def power_state(self) -> VmPowerState:
        # `vmrun list` only reports running VMs.
        return VmPowerState.RUNNING if self.is_running() else VmPowerState.NOT_RUNNING

    def start(self) -> None:
        with log_operation(log, "start", vm=self.vm_path):
            if self.is_running():
                raise VmError.invalid_state(VmPowerState.RUNNING)
            self.start_vm()

    def stop(self, timeout: Optional[float] = None) -> None:
        with log_operation(log, "stop", vm=self.vm_path, timeout=timeout):
            self.convergence.converge(
                "stop",
                lambda: self.stop_vm(hard=False),
                self.power_state,
                targets=(VmPowerState.NOT_RUNNING,),
                timeout=timeout,
            )

    def hard_stop(self) -> None:
        with log_operation(log, "hard_stop", vm=self.vm_path):
            self.convergence.confirm(
                "hard_stop",
                lambda: self.stop_vm(hard=True),
                self.power_state,
                targets=(VmPowerState.NOT_RUNNING,),
            )

    def suspend(self) -> None:
        # vmrun suspend returns once the VM is suspended.
        with log_operation(log, "suspend", vm=self.vm_path):
            self.suspend_vm(hard=False)

    def resume(self) -> None:
        self.start()

    def reboot(self, timeout: Optional[float] = None) -> None:
        with log_operation(log, "reboot", vm=self.vm_path, timeout=timeout):
            self.convergence.reboot(self.stop, self.start, timeout)

    def hard_reboot(self) -> None:
        with log_operation(log, "hard_reboot", vm=self.vm_path):
            self.reset_vm(hard=True)

    def pause(self) -> None:
        self.exec_vm("pause")

    def unpause(self) -> None:
        self.exec_vm("unpause")

    # -- SnapshotCmd --------------------------------------------------------

    def list_snapshots(self) -> List[Snapshot]:
        return parse_vmrun_snapshots(self.exec_vm("listSnapshots"))

    def take_snapshot(self, name: str) -> None:
        with log_operation(log, "take_snapshot", vm=self.vm_path, snapshot=name):
            self.snapshot(name)

    def revert_snapshot(self, name: str) -> None:
        with log_operation(log, "revert_snapshot", vm=self.vm_path, snapshot=name):
            self.ensure_snapshot(name)
            self.revert_to_snapshot(name)

    def delete_snapshot(self, name: str) -> None:
        with log_operation(log, "delete_snapshot", vm=self.vm_path, snapshot=name):
            self.ensure_snapshot(name)
            self.delete_snapshot_with(name, delete_children=True)

    # -- GuestCmd -----------------------------------------------------------

    def exec_cmd(self, guest_args: Sequence[str]) -> None:
        self.run_program_in_guest(guest_args, no_wait=True, active_window=True)

    def copy_from_guest_to_host(self, from_guest_path: str, to_host_path: str) -> None:
        self.copy_file_from_guest_to_host(from_guest_path, to_host_path)

    def copy_from_host_to_guest(self, from_host_path: str, to_guest_path: str) -> None:
        self.copy_file_from_host_to_guest(from_host_path, to_guest_path)

    # -- SharedFolderCmd ----------------------------------------------------

    def list_shared_folders(self) -> List[SharedFolder]:
        # vmrun has no command that lists shared folders.
        raise VmError(ErrorKind.UNSUPPORTED_COMMAND)

    def mount_shared_folder(self, shared_folder: SharedFolder) -> None:
        if not shared_folder.name or not shared_folder.host_path:
            raise VmError(ErrorKind.INVALID_PARAMETER, detail="name and host_path are required")
        self.add_shared_folder(shared_folder.name, shared_folder.host_path)
        self.set_shared_folder_state(
            shared_folder.name, shared_folder.host_path, writable=not shared_folder.is_readonly
        )

    def unmount_shared_folder(self, shared_folder: SharedFolder) -> None:
        self.delete_shared_folder(shared_folder)

    def delete_shared_folder(self, shared_folder: SharedFolder) -> None:
        if not shared_folder.name:
            raise VmError(ErrorKind.INVALID_PARAMETER, detail="name is required")
        self.remove_shared_folder(shared_folder.name)
