#!/usr/bin/env python3
"""Error taxonomy for hypervisor control operations."""

from enum import Enum
from typing import Optional

from hvctrl.models import VmPowerState


class ErrorKind(Enum):
    """Semantic failure reported by a backend."""

    AUTHENTICATION_FAILED = "AuthenticationFailed"
    CREDENTIAL_IS_NOT_SPECIFIED = "CredentialIsNotSpecified"
    EXECUTION_FAILED = "ExecutionFailed"
    FILE_ERROR = "FileError"
    GUEST_AUTHENTICATION_FAILED = "GuestAuthenticationFailed"
    GUEST_FILE_NOT_FOUND = "GuestFileNotFound"
    GUEST_FILE_EXISTS = "GuestFileExists"
    HOST_FILE_NOT_FOUND = "HostFileNotFound"
    HOST_FILE_EXISTS = "HostFileExists"
    INVALID_PARAMETER = "InvalidParameter"
    INVALID_POWER_STATE = "InvalidPowerState"
    NETWORK_ADAPTOR_NOT_FOUND = "NetworkAdaptorNotFound"
    NETWORK_NOT_FOUND = "NetworkNotFound"
    PERMISSION_DENIED = "PermissionDenied"
    PRIVILEGES_REQUIRED = "PrivilegesRequired"
    SERVICE_IS_NOT_RUNNING = "ServiceIsNotRunning"
    SNAPSHOT_NOT_FOUND = "SnapshotNotFound"
    SNAPSHOT_EXISTS = "SnapshotExists"
    TIMEOUT = "Timeout"
    UNEXPECTED_RESPONSE = "UnexpectedResponse"
    UNSUPPORTED_COMMAND = "UnsupportedCommand"
    VM_IS_NOT_SPECIFIED = "VmIsNotSpecified"
    VM_NOT_FOUND = "VmNotFound"
    # Not semantic kinds: unrecognized backend text and local failures.
    UNKNOWN = "Unknown"
    SERIALIZE_ERROR = "SerializeError"
    IO_ERROR = "IoError"


class VmError(Exception):
    """
    Failure of a hypervisor operation.

    Carries an ErrorKind plus optional data: ``detail`` for kinds such as
    ExecutionFailed, FileError, InvalidParameter, UnexpectedResponse and
    Unknown, and ``state`` for InvalidPowerState.
    """

    def __init__(
        self,
        kind: ErrorKind,
        detail: Optional[str] = None,
        state: Optional[VmPowerState] = None,
    ):
        self.kind = kind
        self.detail = detail
        self.state = state
        super().__init__(self._message())

    def _message(self) -> str:
        if self.state is not None:
            return f"{self.kind.value}({self.state.name})"
        if self.detail is not None:
            return f"{self.kind.value}: {self.detail}"
        return self.kind.value

    @classmethod
    def invalid_state(cls, state: VmPowerState) -> "VmError":
        return cls(ErrorKind.INVALID_POWER_STATE, state=state)

    @classmethod
    def unknown(cls, text: str) -> "VmError":
        return cls(ErrorKind.UNKNOWN, detail=text)

    @classmethod
    def unexpected(cls, raw: str) -> "VmError":
        return cls(ErrorKind.UNEXPECTED_RESPONSE, detail=raw)

    def get_invalid_state(self) -> Optional[VmPowerState]:
        """Return the observed state when this is an InvalidPowerState error."""
        if self.kind is ErrorKind.INVALID_POWER_STATE:
            return self.state
        return None

    def is_invalid_state_running(self) -> Optional[bool]:
        state = self.get_invalid_state()
        if state is None:
            return None
        return state.is_running()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VmError):
            return NotImplemented
        return (self.kind, self.detail, self.state) == (other.kind, other.detail, other.state)

    def __hash__(self) -> int:
        return hash((self.kind, self.detail, self.state))

    def __repr__(self) -> str:
        return f"VmError({self._message()!r})"
