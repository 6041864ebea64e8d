#!/usr/bin/env python3
"""
Argument parsers for hvctrl CLI.
"""

import argparse
import sys

from hvctrl import __version__
from hvctrl.cli.guest_commands import cmd_copy, cmd_exec
from hvctrl.cli.hardware_commands import (
    cmd_nic_add,
    cmd_nic_list,
    cmd_nic_remove,
    cmd_nic_update,
    cmd_shared_folder_list,
    cmd_shared_folder_mount,
    cmd_shared_folder_unmount,
)
from hvctrl.cli.power_commands import (
    cmd_hard_reboot,
    cmd_hard_stop,
    cmd_pause,
    cmd_reboot,
    cmd_resume,
    cmd_start,
    cmd_stop,
    cmd_suspend,
    cmd_unpause,
)
from hvctrl.cli.snapshot_commands import (
    cmd_snapshot_delete,
    cmd_snapshot_list,
    cmd_snapshot_revert,
    cmd_snapshot_take,
)
from hvctrl.cli.utils import console
from hvctrl.cli.vm_commands import cmd_list, cmd_state, cmd_version
from hvctrl.errors import VmError

BACKENDS = ["vboxmanage", "vmrun", "vmrest", "hyperv"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hvctrl", description="Control virtual machines across hypervisors"
    )
    parser.add_argument("--version", action="version", version=f"hvctrl {__version__}")
    parser.add_argument("--config", "-c", help="Config file (default: $HVCTRL_CONFIG or ./.hvctrl.yaml)")
    parser.add_argument("--backend", "-b", choices=BACKENDS, help="Backend to use")
    parser.add_argument("--exec", "-e", dest="exec_path", help="Path to the backend executable")
    parser.add_argument("--url", help="vmrest base URL")
    parser.add_argument("--vm", help="VM name, id or .vmx path, depending on the backend")
    parser.add_argument("--guest-user", help="Guest account name")
    parser.add_argument("--guest-password", help="Guest account password")
    parser.add_argument("--log-level", help="DEBUG|INFO|WARNING|ERROR")
    parser.add_argument("--json-logs", action="store_true", help="Render logs as JSON")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    list_parser = subparsers.add_parser("list", help="List VMs")
    list_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    list_parser.set_defaults(func=cmd_list)

    version_parser = subparsers.add_parser("version", help="Show the backend tool version")
    version_parser.set_defaults(func=cmd_version)

    state_parser = subparsers.add_parser("state", help="Show the VM power state")
    state_parser.set_defaults(func=cmd_state)

    # Power commands
    start_parser = subparsers.add_parser("start", help="Start the VM")
    start_parser.set_defaults(func=cmd_start)

    stop_parser = subparsers.add_parser("stop", help="Shut the VM down gracefully")
    stop_parser.add_argument("--timeout", "-t", type=float, default=None, help="Seconds to wait")
    stop_parser.set_defaults(func=cmd_stop)

    hard_stop_parser = subparsers.add_parser("hard-stop", help="Power the VM off")
    hard_stop_parser.set_defaults(func=cmd_hard_stop)

    suspend_parser = subparsers.add_parser("suspend", help="Save the VM state")
    suspend_parser.set_defaults(func=cmd_suspend)

    resume_parser = subparsers.add_parser("resume", help="Resume a suspended VM")
    resume_parser.set_defaults(func=cmd_resume)

    reboot_parser = subparsers.add_parser("reboot", help="Stop gracefully, then start")
    reboot_parser.add_argument("--timeout", "-t", type=float, default=None, help="Seconds to wait")
    reboot_parser.set_defaults(func=cmd_reboot)

    hard_reboot_parser = subparsers.add_parser("hard-reboot", help="Reset the VM")
    hard_reboot_parser.set_defaults(func=cmd_hard_reboot)

    pause_parser = subparsers.add_parser("pause", help="Pause the VM")
    pause_parser.set_defaults(func=cmd_pause)

    unpause_parser = subparsers.add_parser("unpause", help="Unpause the VM")
    unpause_parser.set_defaults(func=cmd_unpause)

    # Snapshot commands
    snapshot_parser = subparsers.add_parser("snapshot", help="Manage snapshots")
    snapshot_sub = snapshot_parser.add_subparsers(dest="snapshot_command", help="Snapshot commands")

    snap_list = snapshot_sub.add_parser("list", help="List snapshots")
    snap_list.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    snap_list.set_defaults(func=cmd_snapshot_list)

    snap_take = snapshot_sub.add_parser("take", help="Take a snapshot")
    snap_take.add_argument("snapshot", help="Snapshot name")
    snap_take.set_defaults(func=cmd_snapshot_take)

    snap_revert = snapshot_sub.add_parser("revert", help="Revert to a snapshot")
    snap_revert.add_argument("snapshot", help="Snapshot name")
    snap_revert.set_defaults(func=cmd_snapshot_revert)

    snap_delete = snapshot_sub.add_parser("delete", help="Delete a snapshot")
    snap_delete.add_argument("snapshot", help="Snapshot name")
    snap_delete.set_defaults(func=cmd_snapshot_delete)

    # Guest commands
    copy_parser = subparsers.add_parser("copy", help="Copy a file between host and guest")
    direction = copy_parser.add_mutually_exclusive_group(required=True)
    direction.add_argument("--from-guest", action="store_true", help="Copy guest SRC to host DST")
    direction.add_argument("--to-guest", action="store_true", help="Copy host SRC to guest DST")
    copy_parser.add_argument("src", help="Source path")
    copy_parser.add_argument("dst", help="Destination path")
    copy_parser.set_defaults(func=cmd_copy)

    exec_parser = subparsers.add_parser("exec", help="Run a program in the guest")
    exec_parser.add_argument("guest_args", nargs=argparse.REMAINDER, help="-- PROGRAM [ARGS...]")
    exec_parser.set_defaults(func=cmd_exec)

    # NIC commands
    nic_parser = subparsers.add_parser("nic", help="Manage network adapters")
    nic_sub = nic_parser.add_subparsers(dest="nic_command", help="NIC commands")

    nic_list = nic_sub.add_parser("list", help="List network adapters")
    nic_list.set_defaults(func=cmd_nic_list)

    nic_add = nic_sub.add_parser("add", help="Add a network adapter")
    nic_add.add_argument("type", help="bridged|nat|hostonly|custom")
    nic_add.add_argument("--network", help="Virtual network for custom adapters (e.g. vmnet2)")
    nic_add.set_defaults(func=cmd_nic_add)

    nic_update = nic_sub.add_parser("update", help="Change a network adapter's type")
    nic_update.add_argument("index", help="Adapter index")
    nic_update.add_argument("type", help="bridged|nat|hostonly|custom")
    nic_update.add_argument("--network", help="Virtual network for custom adapters")
    nic_update.set_defaults(func=cmd_nic_update)

    nic_remove = nic_sub.add_parser("remove", help="Remove a network adapter")
    nic_remove.add_argument("index", help="Adapter index")
    nic_remove.set_defaults(func=cmd_nic_remove)

    # Shared folder commands
    shf_parser = subparsers.add_parser("shared-folder", help="Manage shared folders")
    shf_sub = shf_parser.add_subparsers(dest="shared_folder_command", help="Shared folder commands")

    shf_list = shf_sub.add_parser("list", help="List shared folders")
    shf_list.set_defaults(func=cmd_shared_folder_list)

    shf_mount = shf_sub.add_parser("mount", help="Share a host directory")
    shf_mount.add_argument("folder_id", help="Shared folder name")
    shf_mount.add_argument("host_path", help="Host directory")
    shf_mount.add_argument("--readonly", action="store_true", help="Share read-only")
    shf_mount.set_defaults(func=cmd_shared_folder_mount)

    shf_unmount = shf_sub.add_parser("unmount", help="Stop sharing a folder")
    shf_unmount.add_argument("folder_id", help="Shared folder name")
    shf_unmount.set_defaults(func=cmd_shared_folder_unmount)

    return parser


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/]")
        sys.exit(1)
    except VmError as e:
        console.print(f"[red]❌ {e}[/]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        sys.exit(1)
