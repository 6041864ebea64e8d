#!/usr/bin/env python3
"""
Power commands for hvctrl CLI.
"""

from hvctrl.cli.utils import console, get_backend, require
from hvctrl.interfaces.commands import PowerCmd


def _power(args) -> PowerCmd:
    return require(get_backend(args), PowerCmd)


def cmd_start(args):
    """Start the VM."""
    _power(args).start()
    console.print("[green]✅ VM started[/]")


def cmd_stop(args):
    """Shut the VM down gracefully and wait for it."""
    _power(args).stop(timeout=args.timeout)
    console.print("[green]✅ VM stopped[/]")


def cmd_hard_stop(args):
    """Power the VM off."""
    _power(args).hard_stop()
    console.print("[green]✅ VM powered off[/]")


def cmd_suspend(args):
    _power(args).suspend()
    console.print("[green]✅ VM suspended[/]")


def cmd_resume(args):
    _power(args).resume()
    console.print("[green]✅ VM resumed[/]")


def cmd_reboot(args):
    """Stop the VM gracefully, then start it again."""
    _power(args).reboot(timeout=args.timeout)
    console.print("[green]✅ VM rebooted[/]")


def cmd_hard_reboot(args):
    _power(args).hard_reboot()
    console.print("[green]✅ VM reset[/]")


def cmd_pause(args):
    _power(args).pause()
    console.print("[green]✅ VM paused[/]")


def cmd_unpause(args):
    _power(args).unpause()
    console.print("[green]✅ VM unpaused[/]")
