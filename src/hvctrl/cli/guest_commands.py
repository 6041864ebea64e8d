#!/usr/bin/env python3
"""
Guest commands for hvctrl CLI.
"""

from hvctrl.cli.utils import (
    console,
    get_backend,
    has_vm,
    prompt_guest_credentials,
    require,
    select_vm,
)
from hvctrl.interfaces.commands import GuestCmd


def cmd_copy(args):
    """Copy a file between host and guest.

    Prompts for the VM and guest credentials when they are not configured.
    """
    backend = require(get_backend(args), GuestCmd)

    if not has_vm(backend) and not select_vm(backend):
        console.print("[yellow]Cancelled.[/]")
        return
    if not prompt_guest_credentials(backend):
        console.print("[yellow]Cancelled.[/]")
        return

    if args.from_guest:
        backend.copy_from_guest_to_host(args.src, args.dst)
        console.print(f"[green]✅ Copied guest:{args.src} -> {args.dst}[/]")
    else:
        backend.copy_from_host_to_guest(args.src, args.dst)
        console.print(f"[green]✅ Copied {args.src} -> guest:{args.dst}[/]")


def cmd_exec(args):
    """Run a program inside the guest."""
    guest_args = list(args.guest_args)
    if guest_args and guest_args[0] == "--":
        guest_args = guest_args[1:]
    if not guest_args:
        console.print("[red]❌ No guest command given[/]")
        return

    require(get_backend(args), GuestCmd).exec_cmd(guest_args)
    console.print(f"[green]✅ Started in guest: {' '.join(guest_args)}[/]")
