#!/usr/bin/env python3
"""
Snapshot commands for hvctrl CLI.
"""

import json

from rich.table import Table

from hvctrl.cli.utils import console, get_backend, require
from hvctrl.interfaces.commands import SnapshotCmd


def cmd_snapshot_list(args):
    """List VM snapshots."""
    backend = require(get_backend(args), SnapshotCmd)
    snapshots = backend.list_snapshots()

    if getattr(args, "json", False):
        console.print_json(json.dumps([snapshot.to_dict() for snapshot in snapshots]))
        return

    if not snapshots:
        console.print("[dim]No snapshots found[/]")
        return

    table = Table(title="Snapshots")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Description", style="magenta")

    for snapshot in snapshots:
        table.add_row(snapshot.id or "", snapshot.name or "", snapshot.detail or "")

    console.print(table)


def cmd_snapshot_take(args):
    """Take a VM snapshot."""
    require(get_backend(args), SnapshotCmd).take_snapshot(args.snapshot)
    console.print(f"[green]✅ Snapshot created: {args.snapshot}[/]")


def cmd_snapshot_revert(args):
    """Revert the VM to a snapshot."""
    require(get_backend(args), SnapshotCmd).revert_snapshot(args.snapshot)
    console.print(f"[green]✅ Snapshot {args.snapshot} restored[/]")


def cmd_snapshot_delete(args):
    """Delete a VM snapshot."""
    require(get_backend(args), SnapshotCmd).delete_snapshot(args.snapshot)
    console.print(f"[green]✅ Snapshot {args.snapshot} deleted[/]")
