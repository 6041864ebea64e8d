"""VirtualBox backend driven through the VBoxManage command-line tool."""

from typing import Iterable, List, Optional, Sequence

import structlog

from ..convergence import PowerConvergence
from ..errors import ErrorKind, VmError
from ..interfaces.commands import GuestCmd, PowerCmd, SnapshotCmd, VmCmd
from ..interfaces.process import ProcessRunner
from ..logging import log_operation, mask_args
from ..models import Snapshot, Vm, VmPowerState
from ..parsers import (
    parse_machine_readable,
    parse_snapshot_list,
    parse_vm_list,
    vbox_power_state,
)
from ..translators import check_vboxmanage
from .subprocess_runner import SubprocessRunner

log = structlog.get_logger(__name__)

NO_SNAPSHOTS = "does not have any snapshots"


class VBoxManage(VmCmd, PowerCmd, SnapshotCmd, GuestCmd):
    """VirtualBox backend.

    ``vm`` is the VM name or UUID; VBoxManage accepts either.
    """

    name = "vboxmanage"

    def __init__(
        self,
        executable_path: str = "vboxmanage",
        vm: Optional[str] = None,
        guest_username: Optional[str] = None,
        guest_password: Optional[str] = None,
        guest_password_file: Optional[str] = None,
        guest_domain: Optional[str] = None,
        start_type: Optional[str] = None,
        runner: Optional[ProcessRunner] = None,
        convergence: Optional[PowerConvergence] = None,
    ):
        self.executable_path = executable_path.strip()
        self.vm = vm
        self.guest_username = guest_username
        self.guest_password = guest_password
        self.guest_password_file = guest_password_file
        self.guest_domain = guest_domain
        self.start_type = start_type
        self.runner = runner or SubprocessRunner()
        self.convergence = convergence or PowerConvergence()

    # -- plumbing -----------------------------------------------------------

    def _vm(self) -> str:
        if not self.vm:
            raise VmError(ErrorKind.VM_IS_NOT_SPECIFIED)
        return self.vm

    def _auth(self) -> List[str]:
        args = []
        if self.guest_username is not None:
            args += ["--username", self.guest_username]
        if self.guest_password is not None:
            args += ["--password", self.guest_password]
        if self.guest_password_file is not None:
            args += ["--passwordfile", self.guest_password_file]
        if self.guest_domain is not None:
            args += ["--domain", self.guest_domain]
        return args

    def exec(self, *args: str) -> str:
        """Run VBoxManage and return stdout; error text on stderr raises VmError."""
        command = [self.executable_path, *args]
        log.debug("vboxmanage.exec", args=mask_args(command[1:]))
        result = self.runner.run(command)
        if result.stderr:
            error = check_vboxmanage(result.stderr)
            if error is not None:
                log.debug("vboxmanage.error", stderr=result.stderr.strip(), kind=error.kind.value)
                raise error
            log.debug("vboxmanage.warning", stderr=result.stderr.strip())
        return result.stdout

    # -- raw commands -------------------------------------------------------

    def version(self) -> str:
        return self.exec("-v").strip()

    def show_vm_info(self) -> str:
        return self.exec("showvminfo", self._vm(), "--machinereadable")

    def vm_info(self) -> dict:
        return parse_machine_readable(self.show_vm_info())

    def start_vm(self) -> None:
        args = ["startvm", self._vm()]
        if self.start_type:
            args += ["--type", self.start_type]
        self.exec(*args)

    def control_vm(self, action: str, *args: str) -> None:
        self.exec("controlvm", self._vm(), action, *args)

    def take_snapshot_with(
        self, name: str, description: Optional[str] = None, live: bool = False
    ) -> None:
        args = ["snapshot", self._vm(), "take", name]
        if description is not None:
            args += ["--description", description]
        if live:
            args.append("--live")
        self.exec(*args)

    def restore_current_snapshot(self) -> None:
        self.exec("snapshot", self._vm(), "restorecurrent")

    def run(self, guest_args: Sequence[str]) -> None:
        self.exec("guestcontrol", self._vm(), "run", *self._auth(), *guest_args)

    def copy_from(self, from_guest_path: str, to_host_path: str) -> None:
        self.exec(
            "guestcontrol", self._vm(), "copyfrom", *self._auth(), from_guest_path, to_host_path
        )

    def copy_to(self, from_host_path: str, to_guest_path: str) -> None:
        self.exec(
            "guestcontrol", self._vm(), "copyto", *self._auth(), from_host_path, to_guest_path
        )

    def keyboard_put_scancode(self, codes: Iterable[int]) -> None:
        self.control_vm("keyboardputscancode", *(f"{c:02x}" for c in codes))

    def keyboard_put_string(self, strings: Sequence[str]) -> None:
        self.control_vm("keyboardputstring", *strings)

    # -- VmCmd --------------------------------------------------------------

    def list_vms(self) -> List[Vm]:
        return parse_vm_list(self.exec("list", "vms"))

    def set_vm_by_id(self, id: str) -> None:
        wanted = id.strip("{}")
        self.vm = self.find_vm(lambda vm: vm.id == wanted).id

    def set_vm_by_name(self, name: str) -> None:
        self.vm = self.find_vm(lambda vm: vm.name == name).name

    def set_vm_by_path(self, path: str) -> None:
        # `list vms` does not report configuration file paths.
        raise VmError(ErrorKind.UNSUPPORTED_COMMAND)

    # -- PowerCmd -----------------------------------------------------------

    def power_state(self) -> VmPowerState:
        return vbox_power_state(self.vm_info())

    def is_running(self) -> bool:
        return self.power_state().is_running()

    def start(self) -> None:
        with log_operation(log, "start", vm=self.vm):
            self.start_vm()

    def stop(self, timeout: Optional[float] = None) -> None:
        with log_operation(log, "stop", vm=self.vm, timeout=timeout):
            self.convergence.converge(
                "stop",
                lambda: self.control_vm("acpipowerbutton"),
                self.power_state,
                targets=(VmPowerState.STOPPED, VmPowerState.NOT_RUNNING),
                timeout=timeout,
            )

    def hard_stop(self) -> None:
        with log_operation(log, "hard_stop", vm=self.vm):
            self.convergence.confirm(
                "hard_stop",
                lambda: self.control_vm("poweroff"),
                self.power_state,
                targets=(VmPowerState.STOPPED, VmPowerState.NOT_RUNNING),
            )

    def suspend(self) -> None:
        with log_operation(log, "suspend", vm=self.vm):
            self.convergence.converge(
                "suspend",
                lambda: self.control_vm("savestate"),
                self.power_state,
                targets=(VmPowerState.SUSPENDED,),
            )

    def resume(self) -> None:
        with log_operation(log, "resume", vm=self.vm):
            self.start_vm()

    def reboot(self, timeout: Optional[float] = None) -> None:
        with log_operation(log, "reboot", vm=self.vm, timeout=timeout):
            self.convergence.reboot(self.stop, self.start_vm, timeout)

    def hard_reboot(self) -> None:
        with log_operation(log, "hard_reboot", vm=self.vm):
            self.control_vm("reset")

    def pause(self) -> None:
        self.control_vm("pause")

    def unpause(self) -> None:
        self.control_vm("resume")

    # -- SnapshotCmd --------------------------------------------------------

    def list_snapshots(self) -> List[Snapshot]:
        command = [self.executable_path, "snapshot", self._vm(), "list", "--machinereadable"]
        result = self.runner.run(command)
        # A VM without snapshots makes VBoxManage exit non-zero with a plain message.
        if NO_SNAPSHOTS in result.stdout or NO_SNAPSHOTS in result.stderr:
            return []
        if result.stderr:
            error = check_vboxmanage(result.stderr)
            if error is not None:
                raise error
        return parse_snapshot_list(result.stdout)

    def take_snapshot(self, name: str) -> None:
        with log_operation(log, "take_snapshot", vm=self.vm, snapshot=name):
            self.take_snapshot_with(name, live=True)

    def revert_snapshot(self, name: str) -> None:
        with log_operation(log, "revert_snapshot", vm=self.vm, snapshot=name):
            self.ensure_snapshot(name)
            self.exec("snapshot", self._vm(), "restore", name)

    def delete_snapshot(self, name: str) -> None:
        with log_operation(log, "delete_snapshot", vm=self.vm, snapshot=name):
            self.ensure_snapshot(name)
            self.exec("snapshot", self._vm(), "delete", name)

    # -- GuestCmd -----------------------------------------------------------

    def exec_cmd(self, guest_args: Sequence[str]) -> None:
        self.run(guest_args)

    def copy_from_guest_to_host(self, from_guest_path: str, to_host_path: str) -> None:
        self.copy_from(from_guest_path, to_host_path)

    def copy_from_host_to_guest(self, from_host_path: str, to_guest_path: str) -> None:
        self.copy_to(from_host_path, to_guest_path)
