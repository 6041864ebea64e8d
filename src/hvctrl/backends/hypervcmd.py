"""
Hyper-V backend driven through PowerShell cmdlets.

Every call runs ``powershell -NoProfile -NoLogo -Command <script>``. The
script starts with a UI culture preamble so that error messages come back
in a known language, followed by the cmdlet and its arguments. Values
interpolated into the script are always single-quote escaped; PowerShell
re-parses the whole command line as script text.

Hyper-V calls snapshots "checkpoints" since Windows Server 2012 R2; the
cmdlet names still use ``VMSnapshot``.
"""

import json
from typing import Any, Dict, List, Optional, Sequence

import structlog

from ..convergence import PowerConvergence
from ..errors import ErrorKind, VmError
from ..escaping import escape_pwsh, escape_pwsh_double, pwsh_array
from ..interfaces.commands import GuestCmd, PowerCmd, SnapshotCmd, VmCmd
from ..interfaces.process import ProcessRunner
from ..logging import log_operation
from ..models import Snapshot, Vm, VmPowerState
from ..translators import HYPERV_ALREADY_IN_STATE, check_hyperv
from .subprocess_runner import SubprocessRunner

log = structlog.get_logger(__name__)

# [Microsoft.HyperV.PowerShell.VMOperationalStatus] codes reported as State.
_RUNNING_CODES = {2, 18}  # Running, RunningCritical
_OFF_CODES = {3, 19}  # Off, OffCritical
_SAVED_CODES = {5, 12, 21}  # Saved, FastSaved, SavedCritical
_PAUSED_CODES = {6, 22}  # Paused, PausedCritical

_STATE_NAMES = {
    "Running": VmPowerState.RUNNING,
    "RunningCritical": VmPowerState.RUNNING,
    "Off": VmPowerState.STOPPED,
    "OffCritical": VmPowerState.STOPPED,
    "Saved": VmPowerState.SUSPENDED,
    "FastSaved": VmPowerState.SUSPENDED,
    "SavedCritical": VmPowerState.SUSPENDED,
    "Paused": VmPowerState.PAUSED,
    "PausedCritical": VmPowerState.PAUSED,
}


def hyperv_power_state(state: Any) -> VmPowerState:
    """Map a ``Get-VM`` State value (numeric or enum name) to VmPowerState."""
    if isinstance(state, str):
        return _STATE_NAMES.get(state, VmPowerState.UNKNOWN)
    if state in _RUNNING_CODES:
        return VmPowerState.RUNNING
    if state in _OFF_CODES:
        return VmPowerState.STOPPED
    if state in _SAVED_CODES:
        return VmPowerState.SUSPENDED
    if state in _PAUSED_CODES:
        return VmPowerState.PAUSED
    return VmPowerState.UNKNOWN


def parse_json_records(text: str) -> List[Dict[str, Any]]:
    """ConvertTo-Json emits a bare object for one record and an array for many."""
    text = text.strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except ValueError as e:
        raise VmError.unexpected(str(e)) from e
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list) and all(isinstance(item, dict) for item in data):
        return data
    raise VmError.unexpected(text)


class HyperVCmd(VmCmd, PowerCmd, SnapshotCmd, GuestCmd):
    """Hyper-V backend. The VM is addressed by its name."""

    name = "hyperv"

    def __init__(
        self,
        executable_path: str = "powershell",
        vm_name: Optional[str] = None,
        guest_username: Optional[str] = None,
        guest_password: Optional[str] = None,
        ui_culture: str = "en-US",
        runner: Optional[ProcessRunner] = None,
        convergence: Optional[PowerConvergence] = None,
    ):
        self.executable_path = executable_path
        self.vm_name = vm_name
        self.guest_username = guest_username
        self.guest_password = guest_password
        self.ui_culture = ui_culture
        self.runner = runner or SubprocessRunner()
        self.convergence = convergence or PowerConvergence()

    # -- plumbing -----------------------------------------------------------

    def _vm(self) -> str:
        if not self.vm_name:
            raise VmError(ErrorKind.VM_IS_NOT_SPECIFIED)
        return escape_pwsh(self.vm_name)

    def _credentials(self) -> List[str]:
        if self.guest_username is None or self.guest_password is None:
            raise VmError(ErrorKind.CREDENTIAL_IS_NOT_SPECIFIED)
        return [escape_pwsh(self.guest_username), escape_pwsh(self.guest_password)]

    def _session(self) -> List[str]:
        """Script tokens that open ``$sess``, a PSSession into the guest."""
        username, password = self._credentials()
        return [
            "$password = ConvertTo-SecureString", password, "-AsPlainText -Force;",
            "$cred = New-Object System.Management.Automation.PSCredential (",
            username, ", $password);",
            "$sess = New-PSSession -VMName", self._vm(), "-Credential $cred;",
        ]

    def command_line(self, tokens: Sequence[str]) -> List[str]:
        preamble = (
            "[Threading.Thread]::CurrentThread.CurrentUICulture = "
            f"{escape_pwsh_double(self.ui_culture)};"
        )
        return [self.executable_path, "-NoProfile", "-NoLogo", "-Command", preamble, *tokens]

    def exec(self, cmdlet: str, *args: str, prelude: Sequence[str] = ()) -> str:
        """Run ``cmdlet`` with already-escaped ``args`` and return stdout.

        ``prelude`` holds script statements placed before the cmdlet. Their
        failures are reported under ``New-PSSession``.
        """
        # Arguments may embed guest credentials; only the cmdlet name is logged.
        log.debug("hyperv.exec", cmdlet=cmdlet)
        result = self.runner.run(self.command_line([*prelude, cmdlet, *args]))
        if result.stderr:
            for name in (cmdlet, "New-PSSession") if prelude else (cmdlet,):
                error = check_hyperv(name, result.stderr)
                if error is not None:
                    log.debug("hyperv.error", cmdlet=name, kind=error.kind.value)
                    raise error
            log.debug("hyperv.stderr", cmdlet=cmdlet, stderr=result.stderr.strip())
        return result.stdout

    def exec_transition(self, already: VmPowerState, cmdlet: str, *args: str) -> None:
        """Run a power cmdlet; the "already in the specified state" warning
        becomes ``InvalidPowerState(already)``."""
        out = self.exec(cmdlet, *args)
        if out.lstrip().startswith(HYPERV_ALREADY_IN_STATE):
            raise VmError.invalid_state(already)

    # -- raw cmdlets --------------------------------------------------------

    def start_vm(self) -> None:
        self.exec_transition(VmPowerState.RUNNING, "Start-VM", *pwsh_array([self._vm()]))

    def stop_vm(self, turn_off: bool = False, save: bool = False) -> None:
        args = ["-Force", *pwsh_array([self._vm()])]
        if turn_off:
            args.append("-TurnOff")
        if save:
            args.append("-Save")
        already = VmPowerState.SUSPENDED if save else VmPowerState.STOPPED
        self.exec_transition(already, "Stop-VM", *args)

    def suspend_vm(self) -> None:
        self.exec_transition(VmPowerState.PAUSED, "Suspend-VM", *pwsh_array([self._vm()]))

    def resume_vm(self) -> None:
        self.exec_transition(VmPowerState.RUNNING, "Resume-VM", *pwsh_array([self._vm()]))

    def restart_vm(self) -> None:
        self.exec("Restart-VM", "-Force", "-Confirm:$false", *pwsh_array([self._vm()]))

    def copy_vm_file(self, src_path: str, dst_path: str, create_full_path: bool = True) -> None:
        args = [
            *pwsh_array([self._vm()]),
            "-Force",
            "-SourcePath", escape_pwsh(src_path),
            "-DestinationPath", escape_pwsh(dst_path),
            "-FileSource Host",
        ]
        if create_full_path:
            args.append("-CreateFullPath")
        self.exec("Copy-VMFile", *args)

    def copy_item_from_session(self, src_path: str, dst_path: str) -> None:
        self.exec(
            "Copy-Item",
            "-FromSession $sess -Path", escape_pwsh(src_path),
            "-Destination", escape_pwsh(dst_path),
            "; Remove-PSSession $sess;",
            prelude=self._session(),
        )

    def invoke_command(self, guest_args: Sequence[str]) -> str:
        """Run a program inside the guest over a PSSession; returns its output."""
        if not guest_args:
            raise VmError(ErrorKind.INVALID_PARAMETER, detail="guest_args is empty")
        call = " ".join(escape_pwsh(arg) for arg in guest_args)
        return self.exec(
            "Invoke-Command",
            "-Session $sess -ScriptBlock {", "&", call, "};",
            "Remove-PSSession $sess;",
            prelude=self._session(),
        )

    # -- VmCmd --------------------------------------------------------------

    def list_vms(self) -> List[Vm]:
        records = parse_json_records(self.exec("Get-VM", "|select VMId, Name|ConvertTo-Json"))
        return [Vm(id=r.get("VMId"), name=r.get("Name")) for r in records]

    def set_vm_by_id(self, id: str) -> None:
        """``id`` is the VMId reported by ``Get-VM | select VMId``."""
        self.vm_name = self.find_vm(lambda vm: vm.id == id).name

    def set_vm_by_name(self, name: str) -> None:
        self.vm_name = self.find_vm(lambda vm: vm.name == name).name

    def set_vm_by_path(self, path: str) -> None:
        raise VmError(ErrorKind.UNSUPPORTED_COMMAND)

    # -- PowerCmd -----------------------------------------------------------

    def power_state(self) -> VmPowerState:
        records = parse_json_records(self.exec("Get-VM", self._vm(), "|select State|ConvertTo-Json"))
        if len(records) != 1 or "State" not in records[0]:
            raise VmError.unexpected(str(records))
        return hyperv_power_state(records[0]["State"])

    def is_running(self) -> bool:
        return self.power_state().is_running()

    def start(self) -> None:
        with log_operation(log, "start", vm=self.vm_name):
            self.start_vm()

    def stop(self, timeout: Optional[float] = None) -> None:
        with log_operation(log, "stop", vm=self.vm_name, timeout=timeout):
            self.convergence.converge(
                "stop",
                self.stop_vm,
                self.power_state,
                targets=(VmPowerState.STOPPED,),
                timeout=timeout,
            )

    def hard_stop(self) -> None:
        with log_operation(log, "hard_stop", vm=self.vm_name):
            self.convergence.confirm(
                "hard_stop",
                lambda: self.stop_vm(turn_off=True),
                self.power_state,
                targets=(VmPowerState.STOPPED,),
            )

    def suspend(self) -> None:
        with log_operation(log, "suspend", vm=self.vm_name):
            self.convergence.converge(
                "suspend",
                lambda: self.stop_vm(save=True),
                self.power_state,
                targets=(VmPowerState.SUSPENDED,),
            )

    def resume(self) -> None:
        with log_operation(log, "resume", vm=self.vm_name):
            self.start_vm()

    def reboot(self, timeout: Optional[float] = None) -> None:
        with log_operation(log, "reboot", vm=self.vm_name, timeout=timeout):
            self.convergence.reboot(self.stop, self.start_vm, timeout)

    def hard_reboot(self) -> None:
        with log_operation(log, "hard_reboot", vm=self.vm_name):
            self.restart_vm()

    def pause(self) -> None:
        self.suspend_vm()

    def unpause(self) -> None:
        self.resume_vm()

    # -- SnapshotCmd --------------------------------------------------------

    def list_snapshots(self) -> List[Snapshot]:
        records = parse_json_records(
            self.exec("Get-VMSnapshot", self._vm(), "|select Id, Name, Notes|ConvertTo-Json")
        )
        return [
            Snapshot(
                id=None if r.get("Id") is None else str(r["Id"]),
                name=r.get("Name"),
                detail=r.get("Notes"),
            )
            for r in records
        ]

    def take_snapshot(self, name: str) -> None:
        with log_operation(log, "take_snapshot", vm=self.vm_name, snapshot=name):
            self.exec("Checkpoint-VM", *pwsh_array([self._vm()]), "-SnapshotName", escape_pwsh(name))

    def revert_snapshot(self, name: str) -> None:
        with log_operation(log, "revert_snapshot", vm=self.vm_name, snapshot=name):
            self.ensure_snapshot(name)
            self.exec(
                "Restore-VMSnapshot",
                "-VMName", self._vm(),
                "-Confirm:$false -Name", escape_pwsh(name),
            )

    def delete_snapshot(self, name: str) -> None:
        # Remove-VMSnapshot prints nothing whether or not the snapshot exists.
        with log_operation(log, "delete_snapshot", vm=self.vm_name, snapshot=name):
            self.ensure_snapshot(name)
            self.exec(
                "Remove-VMSnapshot",
                "-VMName", self._vm(),
                "-Confirm:$false -Name", escape_pwsh(name),
            )

    # -- GuestCmd -----------------------------------------------------------

    def exec_cmd(self, guest_args: Sequence[str]) -> None:
        if self.guest_username is None or self.guest_password is None:
            # Without a PSSession there is no way to run a guest program.
            raise VmError(ErrorKind.UNSUPPORTED_COMMAND)
        self.invoke_command(guest_args)

    def copy_from_guest_to_host(self, from_guest_path: str, to_host_path: str) -> None:
        self.copy_item_from_session(from_guest_path, to_host_path)

    def copy_from_host_to_guest(self, from_host_path: str, to_guest_path: str) -> None:
        self.copy_vm_file(from_host_path, to_guest_path, create_full_path=True)
