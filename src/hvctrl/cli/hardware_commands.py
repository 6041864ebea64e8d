#!/usr/bin/env python3
"""
NIC and shared folder commands for hvctrl CLI.
"""

from rich.table import Table

from hvctrl.cli.utils import console, get_backend, require
from hvctrl.errors import ErrorKind, VmError
from hvctrl.interfaces.commands import NicCmd, SharedFolderCmd
from hvctrl.models import Nic, NicType, SharedFolder


def _nic_type(args) -> NicType:
    try:
        return NicType.parse(args.type, getattr(args, "network", None))
    except ValueError as e:
        raise VmError(ErrorKind.INVALID_PARAMETER, detail=str(e)) from e


def cmd_nic_list(args):
    """List network adapters."""
    nics = require(get_backend(args), NicCmd).list_nics()

    if not nics:
        console.print("[dim]No network adapters found[/]")
        return

    table = Table(title="Network adapters")
    table.add_column("Index", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Network", style="yellow")
    table.add_column("MAC", style="blue")

    for nic in nics:
        table.add_row(nic.id or "", str(nic.ty) if nic.ty else "", nic.name or "", nic.mac_address or "")

    console.print(table)


def cmd_nic_add(args):
    require(get_backend(args), NicCmd).add_nic(Nic(ty=_nic_type(args)))
    console.print("[green]✅ Network adapter added[/]")


def cmd_nic_update(args):
    require(get_backend(args), NicCmd).update_nic(Nic(id=args.index, ty=_nic_type(args)))
    console.print(f"[green]✅ Network adapter {args.index} updated[/]")


def cmd_nic_remove(args):
    require(get_backend(args), NicCmd).remove_nic(Nic(id=args.index))
    console.print(f"[green]✅ Network adapter {args.index} removed[/]")


def cmd_shared_folder_list(args):
    """List shared folders."""
    folders = require(get_backend(args), SharedFolderCmd).list_shared_folders()

    if not folders:
        console.print("[dim]No shared folders found[/]")
        return

    table = Table(title="Shared folders")
    table.add_column("ID", style="cyan")
    table.add_column("Host path", style="green")
    table.add_column("Access", style="yellow")

    for folder in folders:
        table.add_row(
            folder.id or folder.name or "",
            folder.host_path or "",
            "read-only" if folder.is_readonly else "read-write",
        )

    console.print(table)


def cmd_shared_folder_mount(args):
    """Share a host directory with the guest."""
    folder = SharedFolder(
        id=args.folder_id,
        name=args.folder_id,
        host_path=args.host_path,
        is_readonly=args.readonly,
    )
    require(get_backend(args), SharedFolderCmd).mount_shared_folder(folder)
    console.print(f"[green]✅ Shared folder {args.folder_id} mounted[/]")


def cmd_shared_folder_unmount(args):
    folder = SharedFolder(id=args.folder_id, name=args.folder_id)
    require(get_backend(args), SharedFolderCmd).unmount_shared_folder(folder)
    console.print(f"[green]✅ Shared folder {args.folder_id} unmounted[/]")
