#!/usr/bin/env python3
"""Data models shared by every hypervisor backend."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class VmPowerState(Enum):
    """Power state of a VM as observed through a backend."""

    RUNNING = "running"
    NOT_RUNNING = "not_running"  # Stopped, Suspended or Paused
    STOPPED = "stopped"
    SUSPENDED = "suspended"
    PAUSED = "paused"
    UNKNOWN = "unknown"  # the backend cannot tell

    def is_running(self) -> bool:
        return self is VmPowerState.RUNNING


class NicKind(Enum):
    BRIDGE = "bridged"
    NAT = "nat"
    HOST_ONLY = "hostonly"
    CUSTOM = "custom"


@dataclass(frozen=True)
class NicType:
    """Attachment type of a virtual NIC.

    ``network`` is only meaningful for ``NicKind.CUSTOM`` and names the
    virtual network (e.g. ``vmnet2``).
    """

    kind: NicKind
    network: Optional[str] = None

    @classmethod
    def bridge(cls) -> "NicType":
        return cls(NicKind.BRIDGE)

    @classmethod
    def nat(cls) -> "NicType":
        return cls(NicKind.NAT)

    @classmethod
    def host_only(cls) -> "NicType":
        return cls(NicKind.HOST_ONLY)

    @classmethod
    def custom(cls, network: str) -> "NicType":
        return cls(NicKind.CUSTOM, network)

    @classmethod
    def parse(cls, value: str, network: Optional[str] = None) -> "NicType":
        """Parse ``bridged``/``nat``/``hostonly``/``custom`` (case-insensitive)."""
        lowered = value.lower()
        if lowered in ("bridge", "bridged"):
            return cls.bridge()
        if lowered == "nat":
            return cls.nat()
        if lowered in ("hostonly", "host-only"):
            return cls.host_only()
        if lowered == "custom":
            return cls.custom(network or "")
        raise ValueError(f"Unknown NIC type: {value}")

    def __str__(self) -> str:
        if self.kind is NicKind.CUSTOM:
            return f"custom({self.network})"
        return self.kind.value


@dataclass(eq=False)
class Vm:
    """A VM as listed by a backend. Each backend fills a different subset."""

    id: Optional[str] = None
    name: Optional[str] = None
    path: Optional[str] = None

    def __eq__(self, other: object) -> bool:
        # The first key present on both sides decides; later keys are ignored.
        if not isinstance(other, Vm):
            return NotImplemented
        for key in ("id", "path", "name"):
            mine, theirs = getattr(self, key), getattr(other, key)
            if mine is not None and theirs is not None:
                return mine == theirs
        return False

    __hash__ = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "path": self.path}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Vm":
        return cls(id=data.get("id"), name=data.get("name"), path=data.get("path"))


@dataclass(eq=False)
class Snapshot:
    """A snapshot (checkpoint) of a VM."""

    id: Optional[str] = None
    name: Optional[str] = None
    detail: Optional[str] = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        for key in ("id", "name"):
            mine, theirs = getattr(self, key), getattr(other, key)
            if mine is not None and theirs is not None:
                return mine == theirs
        return False

    __hash__ = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "detail": self.detail}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        return cls(id=data.get("id"), name=data.get("name"), detail=data.get("detail"))


@dataclass
class Nic:
    """A virtual network adapter."""

    id: Optional[str] = None  # adapter index
    name: Optional[str] = None  # virtual network name
    ty: Optional[NicType] = None
    mac_address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.ty.kind.value if self.ty else None,
            "network": self.ty.network if self.ty else None,
            "mac_address": self.mac_address,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Nic":
        ty = None
        if data.get("type"):
            ty = NicType.parse(data["type"], data.get("network"))
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            ty=ty,
            mac_address=data.get("mac_address"),
        )


@dataclass
class SharedFolder:
    """A host directory shared with the guest."""

    id: Optional[str] = None
    name: Optional[str] = None
    guest_path: Optional[str] = None
    host_path: Optional[str] = None
    is_readonly: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "guest_path": self.guest_path,
            "host_path": self.host_path,
            "is_readonly": self.is_readonly,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SharedFolder":
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            guest_path=data.get("guest_path"),
            host_path=data.get("host_path"),
            is_readonly=bool(data.get("is_readonly", False)),
        )


@dataclass
class ProcessInfo:
    """A process running inside the guest."""

    pid: int
    owner: str
    cmd: str

    def to_dict(self) -> Dict[str, Any]:
        return {"pid": self.pid, "owner": self.owner, "cmd": self.cmd}
