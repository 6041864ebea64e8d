#!/usr/bin/env python3
"""
VM listing and inspection commands for hvctrl CLI.
"""

import json

from rich.table import Table

from hvctrl.cli.utils import console, get_backend, require
from hvctrl.errors import ErrorKind, VmError
from hvctrl.interfaces.commands import PowerCmd, VmCmd
from hvctrl.models import VmPowerState

STATE_STYLES = {
    VmPowerState.RUNNING: "green",
    VmPowerState.STOPPED: "red",
    VmPowerState.NOT_RUNNING: "red",
    VmPowerState.SUSPENDED: "yellow",
    VmPowerState.PAUSED: "yellow",
    VmPowerState.UNKNOWN: "dim",
}


def cmd_list(args):
    """List VMs known to the backend."""
    backend = require(get_backend(args), VmCmd)
    vms = backend.list_vms()

    if getattr(args, "json", False):
        console.print_json(json.dumps([vm.to_dict() for vm in vms]))
        return

    if not vms:
        console.print("[dim]No VMs found[/]")
        return

    table = Table(title=f"VMs ({backend.name})")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Path", style="blue")

    for vm in vms:
        table.add_row(vm.id or "", vm.name or "", vm.path or "")

    console.print(table)


def cmd_version(args):
    """Show the backend tool version."""
    backend = get_backend(args)
    version = getattr(backend, "version", None)
    if version is None:
        raise VmError(ErrorKind.UNSUPPORTED_COMMAND, detail=f"{backend.name} has no version")
    console.print(f"{backend.name} {version()}")


def cmd_state(args):
    """Show the power state of the selected VM."""
    backend = require(get_backend(args), PowerCmd)
    state = backend.power_state()
    style = STATE_STYLES.get(state, "white")
    console.print(f"[{style}]{state.name}[/]")
