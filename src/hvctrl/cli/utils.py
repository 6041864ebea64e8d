#!/usr/bin/env python3
"""
Shared utilities for hvctrl CLI.
"""

import os
from pathlib import Path
from typing import Optional, Type

import questionary
from questionary import Style
from rich.console import Console

from hvctrl.config import DEFAULT_CONFIG_NAME, HvctrlConfig, create_backend
from hvctrl.errors import ErrorKind, VmError
from hvctrl.logging import configure_logging
from hvctrl.models import Vm

# Custom questionary style
custom_style = Style(
    [
        ("qmark", "fg:cyan bold"),
        ("question", "bold"),
        ("answer", "fg:green"),
        ("pointer", "fg:cyan bold"),
        ("highlighted", "fg:cyan bold"),
        ("selected", "fg:green"),
        ("separator", "fg:gray"),
        ("instruction", "fg:gray italic"),
    ]
)

console = Console()
CONFIG_ENV = "HVCTRL_CONFIG"

# Settings field that selects the VM, per backend.
VM_FIELDS = {
    "vboxmanage": "vm",
    "vmrun": "vm_path",
    "vmrest": "vm_id",
    "hyperv": "vm_name",
}


def resolve_config_path(path: Optional[str]) -> Optional[Path]:
    """--config, then $HVCTRL_CONFIG, then ./.hvctrl.yaml if it exists."""
    if path:
        return Path(path).expanduser()
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path).expanduser()
    local = Path.cwd() / DEFAULT_CONFIG_NAME
    return local if local.exists() else None


def load_config(args) -> HvctrlConfig:
    """Load the config file and apply command-line overrides."""
    path = resolve_config_path(getattr(args, "config", None))
    config = HvctrlConfig.load(path) if path else HvctrlConfig()

    if getattr(args, "backend", None):
        config.backend = args.backend
    settings = getattr(config, config.backend)

    if getattr(args, "exec_path", None):
        settings.executable_path = args.exec_path
    if getattr(args, "url", None) and config.backend == "vmrest":
        settings.url = args.url.rstrip("/")
    if getattr(args, "vm", None):
        setattr(settings, VM_FIELDS[config.backend], args.vm)
    if getattr(args, "guest_user", None) and hasattr(settings, "guest_username"):
        settings.guest_username = args.guest_user
    if getattr(args, "guest_password", None) and hasattr(settings, "guest_password"):
        settings.guest_password = args.guest_password

    if getattr(args, "log_level", None):
        config.logging.level = args.log_level.upper()
    if getattr(args, "json_logs", False):
        config.logging.json_output = True
    return config


def setup_logging(config: HvctrlConfig) -> None:
    configure_logging(
        level=config.logging.level,
        json_output=config.logging.json_output,
        log_file=config.logging.log_file,
    )


def get_backend(args):
    """Build the backend for a command invocation."""
    config = load_config(args)
    setup_logging(config)
    return create_backend(config)


def require(backend, interface: Type):
    """Return ``backend`` if it implements ``interface``, else raise UnsupportedCommand."""
    if not isinstance(backend, interface):
        raise VmError(ErrorKind.UNSUPPORTED_COMMAND, detail=f"{backend.name} has no {interface.__name__}")
    return backend


def has_vm(backend) -> bool:
    return bool(getattr(backend, VM_FIELDS[backend.name], None))


def vm_handle(backend_name: str, vm: Vm) -> Optional[str]:
    """The value a backend uses to address ``vm``."""
    if backend_name == "vmrun":
        return vm.path
    if backend_name in ("vboxmanage", "vmrest"):
        return vm.id or vm.name
    return vm.name


def select_vm(backend) -> bool:
    """Ask which VM to use. Returns False if the user cancelled."""
    vms = backend.list_vms()
    if not vms:
        console.print("[yellow]No VMs found[/]")
        return False

    choices = [
        questionary.Choice(title=vm.name or vm.path or vm.id or "?", value=vm) for vm in vms
    ]
    vm = questionary.select("Select a VM:", choices=choices, style=custom_style).ask()
    if vm is None:
        return False
    setattr(backend, VM_FIELDS[backend.name], vm_handle(backend.name, vm))
    return True


def prompt_guest_credentials(backend) -> bool:
    """Ask for missing guest credentials. Returns False if the user cancelled."""
    if not hasattr(backend, "guest_password"):
        return True
    if getattr(backend, "guest_username", None) is None:
        username = questionary.text("Guest username:", style=custom_style).ask()
        if username is None:
            return False
        backend.guest_username = username
    if backend.guest_password is None and getattr(backend, "guest_password_file", None) is None:
        password = questionary.password("Guest password:", style=custom_style).ask()
        if password is None:
            return False
        backend.guest_password = password
    return True
