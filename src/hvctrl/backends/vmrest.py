"""VMware Workstation backend driven through the vmrest REST API."""

from enum import Enum
from typing import Any, Dict, List, Optional

import structlog

from ..convergence import PowerConvergence
from ..errors import ErrorKind, VmError
from ..interfaces.commands import NicCmd, PowerCmd, SharedFolderCmd, VmCmd
from ..interfaces.process import ProcessRunner
from ..logging import log_operation
from ..models import Nic, NicKind, NicType, SharedFolder, Vm, VmPowerState
from ..rest_client import RestClient
from .subprocess_runner import SubprocessRunner

log = structlog.get_logger(__name__)

SERVING_PREFIX = "Serving HTTP on "

# vmrest shared folder flags.
FLAG_READONLY = 0
FLAG_READWRITE = 4


class PowerCommand(str, Enum):
    ON = "on"
    OFF = "off"
    SHUTDOWN = "shutdown"
    SUSPEND = "suspend"
    PAUSE = "pause"
    UNPAUSE = "unpause"


_POWER_STATES = {
    "poweredOn": VmPowerState.RUNNING,
    "poweredOff": VmPowerState.STOPPED,
    "suspended": VmPowerState.SUSPENDED,
    "paused": VmPowerState.PAUSED,
}


def _nic_body(ty: NicType) -> Dict[str, Any]:
    body = {"type": ty.kind.value, "vmnet": None}
    if ty.kind is NicKind.CUSTOM:
        body["vmnet"] = ty.network
    return body


def _nic_from_device(device: Dict[str, Any]) -> Nic:
    try:
        ty = NicType.parse(device["type"], device.get("vmnet"))
        return Nic(
            id=str(device["index"]),
            name=device.get("vmnet"),
            ty=ty,
            mac_address=device.get("macAddress"),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise VmError.unexpected(f"Bad NIC device: {device!r}") from e


class VmRest(VmCmd, PowerCmd, NicCmd, SharedFolderCmd):
    """VMware Workstation REST backend. The VM is addressed by its vmrest id."""

    name = "vmrest"

    def __init__(
        self,
        url: str = "http://127.0.0.1:8697",
        vm_id: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        proxy: Optional[str] = None,
        encoding: str = "utf-8",
        vmrest_path: str = "vmrest",
        client: Optional[RestClient] = None,
        runner: Optional[ProcessRunner] = None,
        convergence: Optional[PowerConvergence] = None,
    ):
        self.vm_id = vm_id
        self.vmrest_path = vmrest_path
        self.client = client or RestClient(
            base_url=url, username=username, password=password, proxy=proxy, encoding=encoding
        )
        self.runner = runner or SubprocessRunner()
        self.convergence = convergence or PowerConvergence()

    # -- plumbing -----------------------------------------------------------

    def _vm(self) -> str:
        if not self.vm_id:
            raise VmError(ErrorKind.VM_IS_NOT_SPECIFIED)
        return self.vm_id

    def _vm_path(self, *parts: str) -> str:
        return "/".join(["api", "vms", self._vm(), *parts])

    def _get_json(self, path: str) -> Any:
        return self.client.deserialize(self.client.get(path))

    # -- server management --------------------------------------------------

    def start_server(self) -> str:
        """Run vmrest and point the client at the address it serves on."""
        result = self.runner.run([self.vmrest_path])
        for line in result.stdout.splitlines():
            if line.startswith(SERVING_PREFIX):
                url = line[len(SERVING_PREFIX):].strip().rstrip("/")
                if "://" not in url:
                    url = f"http://{url}"
                self.client.base_url = url
                log.info("vmrest.server_started", url=self.client.base_url)
                return self.client.base_url
        raise VmError.unknown("Failed to start a server")

    def setup_user(self, username: str, password: str) -> None:
        """Create the API account with ``vmrest -C``; credentials go on stdin."""
        result = self.runner.run(
            [self.vmrest_path, "-C"], input=f"{username}\n{password}\n{password}\n"
        )
        if not result.success:
            raise VmError(ErrorKind.EXECUTION_FAILED, detail=result.stderr.strip())

    # -- raw API ------------------------------------------------------------

    def delete_vm(self) -> None:
        with log_operation(log, "delete_vm", vm=self.vm_id):
            self.client.delete(self._vm_path())

    def get_power_state(self) -> VmPowerState:
        data = self._get_json(self._vm_path("power"))
        raw = data.get("power_state") if isinstance(data, dict) else None
        if raw not in _POWER_STATES:
            raise VmError.unexpected(str(raw))
        return _POWER_STATES[raw]

    def set_power_state(self, command: PowerCommand) -> VmPowerState:
        """PUT a power command; returns the state vmrest reports afterwards."""
        text = self.client.put(self._vm_path("power"), PowerCommand(command).value)
        data = self.client.deserialize(text)
        raw = data.get("power_state") if isinstance(data, dict) else None
        return _POWER_STATES.get(raw, VmPowerState.UNKNOWN)

    def _set_and_expect(self, command: PowerCommand, expected: VmPowerState) -> None:
        state = self.set_power_state(command)
        if state is not expected:
            raise VmError.unknown("Failed to change power state")

    def power_on(self) -> None:
        """Power on a VM that is not running.

        vmrest answers ``poweredOn`` to 'on' for a running VM too, so the
        state is checked first.
        """
        if self.get_power_state() is VmPowerState.RUNNING:
            raise VmError.invalid_state(VmPowerState.RUNNING)
        self._set_and_expect(PowerCommand.ON, VmPowerState.RUNNING)

    def get_ip_address(self) -> str:
        data = self._get_json(self._vm_path("ip"))
        if not isinstance(data, dict) or not isinstance(data.get("ip"), str):
            raise VmError.unexpected(str(data))
        return data["ip"]

    def create_nic(self, ty: NicType) -> Nic:
        text = self.client.post(self._vm_path("nic"), _nic_body(ty))
        return _nic_from_device(self.client.deserialize(text))

    def update_nic_type(self, index: int, ty: NicType) -> None:
        text = self.client.put(self._vm_path("nic", str(index)), _nic_body(ty))
        nic = _nic_from_device(self.client.deserialize(text))
        if nic.id != str(index):
            raise VmError.unexpected(nic.id)

    def delete_nic(self, index: int) -> None:
        self.client.delete(self._vm_path("nic", str(index)))

    def delete_shared_folder_by_id(self, folder_id: str) -> None:
        self.client.delete(self._vm_path("sharedfolders", folder_id))

    # -- VmCmd --------------------------------------------------------------

    def list_vms(self) -> List[Vm]:
        data = self._get_json("api/vms")
        if not isinstance(data, list):
            raise VmError.unexpected(str(data))
        return [Vm.from_dict(item) for item in data]

    def set_vm_by_id(self, id: str) -> None:
        self.vm_id = self.find_vm(lambda vm: vm.id == id).id

    def set_vm_by_name(self, name: str) -> None:
        # vmrest does not report display names.
        raise VmError(ErrorKind.UNSUPPORTED_COMMAND)

    def set_vm_by_path(self, path: str) -> None:
        self.vm_id = self.find_vm(lambda vm: vm.path == path).id

    # -- PowerCmd -----------------------------------------------------------

    def power_state(self) -> VmPowerState:
        return self.get_power_state()

    def is_running(self) -> bool:
        return self.power_state().is_running()

    def start(self) -> None:
        with log_operation(log, "start", vm=self.vm_id):
            self.power_on()

    def stop(self, timeout: Optional[float] = None) -> None:
        with log_operation(log, "stop", vm=self.vm_id, timeout=timeout):
            self.convergence.converge(
                "stop",
                lambda: self.set_power_state(PowerCommand.SHUTDOWN),
                self.power_state,
                targets=(VmPowerState.STOPPED, VmPowerState.NOT_RUNNING),
                timeout=timeout,
            )

    def hard_stop(self) -> None:
        with log_operation(log, "hard_stop", vm=self.vm_id):
            self.convergence.confirm(
                "hard_stop",
                lambda: self.set_power_state(PowerCommand.OFF),
                self.power_state,
                targets=(VmPowerState.STOPPED, VmPowerState.NOT_RUNNING),
            )

    def suspend(self) -> None:
        with log_operation(log, "suspend", vm=self.vm_id):
            self.convergence.converge(
                "suspend",
                lambda: self.set_power_state(PowerCommand.SUSPEND),
                self.power_state,
                targets=(VmPowerState.SUSPENDED,),
            )

    def resume(self) -> None:
        with log_operation(log, "resume", vm=self.vm_id):
            self.power_on()

    def reboot(self, timeout: Optional[float] = None) -> None:
        with log_operation(log, "reboot", vm=self.vm_id, timeout=timeout):
            self.convergence.reboot(self.stop, self.power_on, timeout)

    def hard_reboot(self) -> None:
        with log_operation(log, "hard_reboot", vm=self.vm_id):
            self.hard_stop()
            self.start()

    def pause(self) -> None:
        self._set_and_expect(PowerCommand.PAUSE, VmPowerState.PAUSED)

    def unpause(self) -> None:
        self._set_and_expect(PowerCommand.UNPAUSE, VmPowerState.RUNNING)

    # -- NicCmd -------------------------------------------------------------

    def list_nics(self) -> List[Nic]:
        data = self._get_json(self._vm_path("nic"))
        try:
            devices = data["nics"]
            num = data["num"]
        except (KeyError, TypeError) as e:
            raise VmError.unexpected(str(data)) from e
        if num != len(devices):
            raise VmError.unexpected(f"num={num} but {len(devices)} NICs listed")
        return [_nic_from_device(device) for device in devices]

    @staticmethod
    def _index(nic: Nic) -> int:
        try:
            return int(nic.id)
        except ValueError as e:
            raise VmError(ErrorKind.INVALID_PARAMETER, detail=f"id: {nic.id}") from e

    def add_nic(self, nic: Nic) -> None:
        if nic.ty is None:
            raise VmError(ErrorKind.INVALID_PARAMETER, detail="ty is required")
        self.create_nic(nic.ty)

    def update_nic(self, nic: Nic) -> None:
        if nic.id is None or nic.ty is None:
            raise VmError(ErrorKind.INVALID_PARAMETER, detail="id and ty are required")
        self.update_nic_type(self._index(nic), nic.ty)

    def remove_nic(self, nic: Nic) -> None:
        if nic.id is None:
            raise VmError(ErrorKind.INVALID_PARAMETER, detail="id is required")
        self.delete_nic(self._index(nic))

    # -- SharedFolderCmd ----------------------------------------------------

    def list_shared_folders(self) -> List[SharedFolder]:
        data = self._get_json(self._vm_path("sharedfolders"))
        if not isinstance(data, list):
            raise VmError.unexpected(str(data))
        return [
            SharedFolder(
                id=item.get("folder_id"),
                host_path=item.get("host_path"),
                is_readonly=item.get("flags") != FLAG_READWRITE,
            )
            for item in data
        ]

    def mount_shared_folder(self, shared_folder: SharedFolder) -> None:
        if shared_folder.id is None or shared_folder.host_path is None:
            raise VmError(ErrorKind.INVALID_PARAMETER, detail="id and host_path are required")
        body = [
            {
                "folder_id": shared_folder.id,
                "host_path": shared_folder.host_path,
                "flags": FLAG_READONLY if shared_folder.is_readonly else FLAG_READWRITE,
            }
        ]
        self.client.post(self._vm_path("sharedfolders"), body)

    def unmount_shared_folder(self, shared_folder: SharedFolder) -> None:
        self.delete_shared_folder(shared_folder)

    def delete_shared_folder(self, shared_folder: SharedFolder) -> None:
        if shared_folder.id is None:
            raise VmError(ErrorKind.INVALID_PARAMETER, detail="id is required")
        self.delete_shared_folder_by_id(shared_folder.id)
