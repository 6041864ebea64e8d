#!/usr/bin/env python3
"""
Parsers for the machine-readable text that hypervisor tools emit.

- VBoxManage ``snapshot list --machinereadable`` descriptor dumps
- VBoxManage ``list vms`` and ``showvminfo --machinereadable``
- VMware ``inventory.vmls`` / ``preferences.ini`` key/value files
- vmrun ``list``, ``listSnapshots``, ``listProcessesInGuest`` and
  ``listDirectoryInGuest`` outputs
"""

import codecs
import os
import re
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from hvctrl.errors import ErrorKind, VmError
from hvctrl.models import ProcessInfo, Snapshot, Vm, VmPowerState

# --- VBoxManage snapshot descriptors ----------------------------------------

SNAPSHOT_NAME = "SnapshotName"
SNAPSHOT_UUID = "SnapshotUUID"
SNAPSHOT_DESCRIPTION = "SnapshotDescription"
CURRENT_SNAPSHOT_MARKER = 'CurrentSnapshotName="'


class _State(Enum):
    INIT = "init"
    NAME = "name"
    UUID = "uuid"
    DESC = "desc"
    DESC_CONT = "desc_cont"


def _classify(line: str) -> Optional[_State]:
    if line.startswith(SNAPSHOT_NAME):
        return _State.NAME
    if line.startswith(SNAPSHOT_UUID):
        return _State.UUID
    if line.startswith(SNAPSHOT_DESCRIPTION):
        return _State.DESC
    if line.startswith(CURRENT_SNAPSHOT_MARKER):
        return None
    return _State.DESC_CONT


def _value(line: str, strip_quote: bool = True) -> str:
    """Text after the first ``="``; optionally drop the closing quote."""
    pos = line.find('="')
    if pos < 0:
        raise VmError.unexpected(line)
    value = line[pos + 2:]
    if strip_quote:
        if not value.endswith('"'):
            raise VmError.unexpected(line)
        value = value[:-1]
    return value


def _close_description(parts: List[str], line: str) -> str:
    detail = os.linesep.join(parts)
    if not detail.endswith('"'):
        raise VmError.unexpected(line)
    return detail[:-1]


def parse_snapshot_list(text: str) -> List[Snapshot]:
    """
    Parse ``VBoxManage snapshot <vm> list --machinereadable``.

    Records are ``SnapshotName*``, ``SnapshotUUID*`` and
    ``SnapshotDescription*`` lines; the description may continue over
    several lines without a key. The dump ends with
    ``CurrentSnapshotName="..."`` followed by lines that are not parsed.
    """
    state = _State.INIT
    snapshots: List[Snapshot] = []
    current: Optional[Snapshot] = None
    description: List[str] = []

    def finish(line: str) -> None:
        current.detail = _close_description(description, line)
        snapshots.append(current)

    for line in text.splitlines():
        kind = _classify(line)

        if kind is None:
            if state in (_State.DESC, _State.DESC_CONT):
                finish(line)
                return snapshots
            if state is _State.INIT:
                # Only the trailing marker: no snapshots at all.
                return snapshots
            raise VmError.unexpected(line)

        if state is _State.INIT and kind is _State.NAME:
            current = Snapshot(name=_value(line))
            state = _State.NAME
        elif state is _State.NAME and kind is _State.UUID:
            current.id = _value(line)
            state = _State.UUID
        elif state is _State.UUID and kind is _State.DESC:
            description = [_value(line, strip_quote=False)]
            state = _State.DESC
        elif state in (_State.DESC, _State.DESC_CONT) and kind is _State.NAME:
            finish(line)
            current = Snapshot(name=_value(line))
            description = []
            state = _State.NAME
        elif state in (_State.DESC, _State.DESC_CONT) and kind is _State.DESC_CONT:
            description.append(line)
            state = _State.DESC_CONT
        else:
            raise VmError.unexpected(line)

    if state in (_State.DESC, _State.DESC_CONT):
        finish(description[-1])
    elif state is not _State.INIT:
        raise VmError.unexpected(text)
    return snapshots


def format_snapshot_list(snapshots: List[Snapshot]) -> str:
    """Serialize snapshots back into the descriptor format."""
    lines = []
    for i, sn in enumerate(snapshots):
        suffix = "" if i == 0 else f"-{i}"
        lines.append(f'{SNAPSHOT_NAME}{suffix}="{sn.name or ""}"')
        lines.append(f'{SNAPSHOT_UUID}{suffix}="{sn.id or ""}"')
        detail = (sn.detail or "").replace(os.linesep, "\n")
        lines.append(f'{SNAPSHOT_DESCRIPTION}{suffix}="{detail}"')
    if snapshots:
        lines.append(f'{CURRENT_SNAPSHOT_MARKER}{snapshots[-1].name or ""}"')
        lines.append(f'CurrentSnapshotUUID="{snapshots[-1].id or ""}"')
        lines.append('CurrentSnapshotNode="SnapshotName"')
    return "\n".join(lines) + ("\n" if lines else "")


# --- VBoxManage list vms / showvminfo ---------------------------------------


def parse_vm_list(text: str) -> List[Vm]:
    """Parse ``VBoxManage list vms``: one ``"name" {uuid}`` per line."""
    vms = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        quoted, sep, uuid = line.rpartition(" ")
        if not sep or len(quoted) < 2 or not (quoted[0] == quoted[-1] == '"'):
            raise VmError.unexpected(line)
        vms.append(Vm(id=uuid.strip("{}"), name=quoted[1:-1]))
    return vms


_VBOX_STATES = {
    "running": VmPowerState.RUNNING,
    "poweroff": VmPowerState.STOPPED,
    "aborted": VmPowerState.STOPPED,
    "saved": VmPowerState.SUSPENDED,
    "paused": VmPowerState.PAUSED,
}


def parse_machine_readable(text: str) -> Dict[str, str]:
    """Parse ``key="value"`` / ``key=value`` lines into a dict.

    Keys may themselves be quoted (``"SATA-0-0"="..."``). Multi-line values
    keep only their first line.
    """
    info: Dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip().strip('"')
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        info.setdefault(key, value)
    return info


def vbox_power_state(info: Dict[str, str]) -> VmPowerState:
    if "VMState" not in info:
        raise VmError.unexpected("VMState is missing from showvminfo output")
    return _VBOX_STATES.get(info["VMState"], VmPowerState.UNKNOWN)


# --- VMware inventory / preferences -----------------------------------------

_ENCODING_LINE = re.compile(r'^\.encoding\s*=\s*"(?P<encoding>[^"]+)"\s*$')
_KEY_VALUE = re.compile(r'^(?P<key>[^=\s]+)\s*=\s*"(?P<value>.*)"\s*$')

# (key prefix, {field: Vm attribute})
INVENTORY_SCHEMA: Tuple[str, Dict[str, str]] = (
    "vmlist",
    {"config": "path", "DisplayName": "name"},
)
PREFERENCES_SCHEMA: Tuple[str, Dict[str, str]] = (
    "pref.mruVM",
    {"filename": "path", "displayName": "name"},
)


def decode_vmware_file(data: bytes) -> str:
    """Decode a VMware key/value file using the encoding its first line declares."""
    if data.startswith(codecs.BOM_UTF8):
        data = data[len(codecs.BOM_UTF8):]
    first, _, rest = data.partition(b"\n")
    try:
        header = first.decode("ascii").strip()
    except UnicodeDecodeError:
        raise VmError.unexpected(repr(first))
    m = _ENCODING_LINE.match(header)
    if not m:
        raise VmError.unexpected(header)
    encoding = m.group("encoding")
    try:
        codecs.lookup(encoding)
        return rest.decode(encoding)
    except (LookupError, UnicodeDecodeError) as e:
        raise VmError(ErrorKind.FILE_ERROR, detail=f"{encoding}: {e}")


def parse_vmware_records(text: str, schema: Tuple[str, Dict[str, str]]) -> List[Vm]:
    """Collect one Vm per index N from ``<prefix><N>.<field> = "value"`` lines."""
    prefix, fields = schema
    key_re = re.compile(r"^" + re.escape(prefix) + r"(?P<index>\d+)\.(?P<field>\w+)$")
    records: Dict[int, Vm] = {}
    for line in text.splitlines():
        kv = _KEY_VALUE.match(line.strip())
        if not kv:
            continue
        key = key_re.match(kv.group("key"))
        if not key or key.group("field") not in fields:
            continue
        vm = records.setdefault(int(key.group("index")), Vm())
        setattr(vm, fields[key.group("field")], kv.group("value"))
    return list(records.values())


def parse_vmware_inventory(data: bytes) -> List[Vm]:
    """Parse VMware Workstation's ``inventory.vmls``."""
    return parse_vmware_records(decode_vmware_file(data), INVENTORY_SCHEMA)


def parse_vmware_preferences(data: bytes) -> List[Vm]:
    """Parse VMware Player's ``preferences.ini`` most-recently-used list."""
    return parse_vmware_records(decode_vmware_file(data), PREFERENCES_SCHEMA)


def read_vmware_file(path: Union[str, Path], preferences: bool = False) -> List[Vm]:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise VmError(ErrorKind.IO_ERROR, detail=str(e))
    if preferences:
        return parse_vmware_preferences(data)
    return parse_vmware_inventory(data)


# --- vmrun outputs ----------------------------------------------------------


def parse_counted_list(text: str, header: str) -> List[str]:
    """Parse ``<header>N`` followed by N lines."""
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return []
    if not lines[0].startswith(header):
        raise VmError.unexpected(lines[0])
    try:
        count = int(lines[0][len(header):].strip())
    except ValueError:
        raise VmError.unexpected(lines[0])
    items = [line.strip() for line in lines[1:]]
    if len(items) != count:
        raise VmError.unexpected(text)
    return items


def parse_running_vms(text: str) -> List[Vm]:
    return [Vm(path=p) for p in parse_counted_list(text, "Total running VMs:")]


def parse_vmrun_snapshots(text: str) -> List[Snapshot]:
    return [Snapshot(name=n) for n in parse_counted_list(text, "Total snapshots:")]


def parse_guest_processes(text: str) -> List[ProcessInfo]:
    """Parse ``pid=..., owner=..., cmd=...`` lines."""
    processes = []
    for line in parse_counted_list(text, "Total processes:"):
        parts = line.split(", ", 2)
        if len(parts) != 3:
            raise VmError.unexpected(line)
        pid, owner, cmd = parts
        if not (pid.startswith("pid=") and owner.startswith("owner=") and cmd.startswith("cmd=")):
            raise VmError.unexpected(line)
        try:
            pid_value = int(pid[len("pid="):])
        except ValueError:
            raise VmError.unexpected(line)
        processes.append(ProcessInfo(pid=pid_value, owner=owner[len("owner="):], cmd=cmd[len("cmd="):]))
    return processes


def parse_directory_listing(text: str) -> List[str]:
    """``listDirectoryInGuest`` prints a header line then one entry per line."""
    return [line for line in text.splitlines()[1:] if line]


def parse_vmrun_version(text: str) -> str:
    """The version is on the third line: ``vmrun version 1.17.0 build-17801498``."""
    lines = text.splitlines()
    if len(lines) < 3 or not lines[2].startswith("vmrun version "):
        raise VmError.unexpected(text)
    return lines[2][len("vmrun version "):].strip()
