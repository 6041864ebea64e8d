#!/usr/bin/env python3
"""
Pydantic models for hvctrl configuration, and backend construction.
"""

from pathlib import Path
from typing import Literal, Optional

import requests
from pydantic import BaseModel, Field, field_validator

from hvctrl.backends.hypervcmd import HyperVCmd
from hvctrl.backends.vboxmanage import VBoxManage
from hvctrl.backends.vmrest import VmRest
from hvctrl.backends.vmrun import HostType, VmRun
from hvctrl.interfaces.process import ProcessRunner
from hvctrl.rest_client import RestClient

BackendName = Literal["vboxmanage", "vmrun", "vmrest", "hyperv"]

DEFAULT_CONFIG_NAME = ".hvctrl.yaml"


def _not_blank(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("executable path cannot be empty")
    return v.strip()


class VBoxManageSettings(BaseModel):
    """VirtualBox settings."""

    executable_path: str = Field(default="vboxmanage", description="Path to VBoxManage")
    vm: Optional[str] = Field(default=None, description="VM name or UUID")
    guest_username: Optional[str] = Field(default=None, description="Guest account name")
    guest_password: Optional[str] = Field(default=None, description="Guest account password")
    guest_password_file: Optional[str] = Field(
        default=None, description="File holding the guest password"
    )
    guest_domain: Optional[str] = Field(default=None, description="Guest account domain")
    start_type: Optional[str] = Field(default=None, description="startvm --type: gui|headless|sdl|separate")

    @field_validator("executable_path")
    @classmethod
    def executable_path_must_be_set(cls, v: str) -> str:
        return _not_blank(v)

    @field_validator("start_type")
    @classmethod
    def start_type_must_be_valid(cls, v: Optional[str]) -> Optional[str]:
        valid_types = {"gui", "headless", "sdl", "separate"}
        if v is not None and v not in valid_types:
            raise ValueError(f"start_type must be one of: {valid_types}")
        return v


class VmRunSettings(BaseModel):
    """VMware vmrun settings."""

    executable_path: str = Field(default="vmrun", description="Path to vmrun")
    host_type: HostType = Field(default=HostType.WORKSTATION, description="player|ws|fusion")
    vm_path: Optional[str] = Field(default=None, description="Path to the .vmx file")
    vm_password: Optional[str] = Field(default=None, description="Password of an encrypted VM")
    guest_username: Optional[str] = Field(default=None, description="Guest account name")
    guest_password: Optional[str] = Field(default=None, description="Guest account password")
    gui: bool = Field(default=True, description="Start the VM with a window")
    inventory_path: Optional[str] = Field(
        default=None, description="inventory.vmls or preferences.ini listing the VMs"
    )

    @field_validator("executable_path")
    @classmethod
    def executable_path_must_be_set(cls, v: str) -> str:
        return _not_blank(v)


class VmRestSettings(BaseModel):
    """VMware REST API settings."""

    url: str = Field(default="http://127.0.0.1:8697", description="vmrest base URL")
    vm_id: Optional[str] = Field(default=None, description="vmrest VM id")
    username: Optional[str] = Field(default=None, description="API user")
    password: Optional[str] = Field(default=None, description="API password")
    proxy: Optional[str] = Field(default=None, description="HTTP proxy URL")
    encoding: str = Field(default="utf-8", description="Response body encoding")
    vmrest_path: str = Field(default="vmrest", description="Path to the vmrest executable")
    timeout: Optional[float] = Field(default=None, gt=0, description="HTTP timeout in seconds")

    @field_validator("url")
    @classmethod
    def url_must_be_http(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return v.rstrip("/")


class HyperVSettings(BaseModel):
    """Hyper-V settings."""

    executable_path: str = Field(default="powershell", description="Path to PowerShell")
    vm_name: Optional[str] = Field(default=None, description="VM name")
    guest_username: Optional[str] = Field(default=None, description="Guest account for PSSession")
    guest_password: Optional[str] = Field(default=None, description="Guest password for PSSession")
    ui_culture: str = Field(default="en-US", description="UI culture for cmdlet messages")

    @field_validator("executable_path")
    @classmethod
    def executable_path_must_be_set(cls, v: str) -> str:
        return _not_blank(v)


class LoggingSettings(BaseModel):
    """Logging settings."""

    level: str = Field(default="WARNING", description="DEBUG|INFO|WARNING|ERROR")
    json_output: bool = Field(default=False, description="Render logs as JSON")
    log_file: Optional[Path] = Field(default=None, description="Also write JSON logs here")

    @field_validator("level")
    @classmethod
    def level_must_be_valid(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"level must be one of: {valid_levels}")
        return v.upper()


class HvctrlConfig(BaseModel):
    """Complete hvctrl configuration with validation."""

    backend: BackendName = Field(default="vboxmanage", description="Backend to use")
    vboxmanage: VBoxManageSettings = Field(default_factory=VBoxManageSettings)
    vmrun: VmRunSettings = Field(default_factory=VmRunSettings)
    vmrest: VmRestSettings = Field(default_factory=VmRestSettings)
    hyperv: HyperVSettings = Field(default_factory=HyperVSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def save(self, path: Path) -> None:
        """Save configuration to YAML file."""
        import yaml

        config_dict = self.model_dump(mode="json", exclude_none=True)
        path.write_text(yaml.safe_dump(config_dict, default_flow_style=False, sort_keys=False))

    @classmethod
    def load(cls, path: Path) -> "HvctrlConfig":
        """Load configuration from YAML file."""
        import yaml

        if path.is_dir():
            path = path / DEFAULT_CONFIG_NAME
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        data = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(data)


def create_backend(
    config: HvctrlConfig,
    runner: Optional[ProcessRunner] = None,
    session: Optional[requests.Session] = None,
):
    """Build the adapter selected by ``config.backend``."""
    if config.backend == "vboxmanage":
        s = config.vboxmanage
        return VBoxManage(
            executable_path=s.executable_path,
            vm=s.vm,
            guest_username=s.guest_username,
            guest_password=s.guest_password,
            guest_password_file=s.guest_password_file,
            guest_domain=s.guest_domain,
            start_type=s.start_type,
            runner=runner,
        )
    if config.backend == "vmrun":
        s = config.vmrun
        return VmRun(
            executable_path=s.executable_path,
            host_type=s.host_type,
            vm_path=s.vm_path,
            vm_password=s.vm_password,
            guest_username=s.guest_username,
            guest_password=s.guest_password,
            gui=s.gui,
            inventory_path=s.inventory_path,
            runner=runner,
        )
    if config.backend == "vmrest":
        s = config.vmrest
        client = RestClient(
            base_url=s.url,
            username=s.username,
            password=s.password,
            proxy=s.proxy,
            encoding=s.encoding,
            timeout=s.timeout,
            session=session,
        )
        return VmRest(vm_id=s.vm_id, vmrest_path=s.vmrest_path, client=client, runner=runner)
    if config.backend == "hyperv":
        s = config.hyperv
        return HyperVCmd(
            executable_path=s.executable_path,
            vm_name=s.vm_name,
            guest_username=s.guest_username,
            guest_password=s.guest_password,
            ui_culture=s.ui_culture,
            runner=runner,
        )
    raise ValueError(f"Unknown backend: {config.backend}")
