#!/usr/bin/env python3
"""
Translation of raw backend error text into VmError.

Each backend has its own ordered rule table. Rules are tried in order, the
first match wins, and unmatched text becomes ``Unknown(<text>)`` verbatim.
The tables are deliberately not shared between backends.
"""

import json
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

from hvctrl.errors import ErrorKind, VmError
from hvctrl.models import VmPowerState

ErrorFactory = Callable[[str], VmError]


@dataclass(frozen=True)
class Rule:
    """A single (pattern -> error) rule.

    ``match`` is one of ``prefix``, ``suffix``, ``contains``, ``equals``,
    ``first_line_suffix`` or ``regex``. ``error`` is either a fixed
    VmError or a factory called with the full message text.
    """

    match: str
    pattern: str
    error: Union[VmError, ErrorFactory]

    def matches(self, text: str) -> bool:
        if self.match == "prefix":
            return text.startswith(self.pattern)
        if self.match == "suffix":
            return text.endswith(self.pattern)
        if self.match == "contains":
            return self.pattern in text
        if self.match == "equals":
            return text == self.pattern
        if self.match == "first_line_suffix":
            first = text.splitlines()[0] if text else ""
            return first.endswith(self.pattern)
        if self.match == "regex":
            return re.search(self.pattern, text) is not None
        raise ValueError(f"Unknown rule match type: {self.match}")

    def build(self, text: str) -> VmError:
        if isinstance(self.error, VmError):
            return VmError(self.error.kind, self.error.detail, self.error.state)
        return self.error(text)


def translate(rules: Sequence[Rule], text: str) -> VmError:
    """Apply ``rules`` to ``text``; unmatched text becomes Unknown."""
    for rule in rules:
        if rule.matches(text):
            return rule.build(text)
    return VmError.unknown(text)


def _simple(kind: ErrorKind) -> VmError:
    return VmError(kind)


def _state(state: VmPowerState) -> VmError:
    return VmError.invalid_state(state)


def _after_prefix(prefix: str, kind: ErrorKind) -> ErrorFactory:
    return lambda text: VmError(kind, detail=text[len(prefix):])


# --- VBoxManage -------------------------------------------------------------

VBOX_ERROR_PREFIX = re.compile(r"^vboxmanage(?:\.exe)?: error: ", re.IGNORECASE)


def _vbox_file_error(text: str) -> VmError:
    last = text.splitlines()[-1]
    pos = last.rfind(": ")
    return VmError(ErrorKind.FILE_ERROR, detail=last[pos + 2:] if pos >= 0 else last)


VBOX_RULES: List[Rule] = [
    Rule("prefix", "Could not find a registered machine named", _simple(ErrorKind.VM_NOT_FOUND)),
    Rule("prefix", "Could not find a snapshot named ", _simple(ErrorKind.SNAPSHOT_NOT_FOUND)),
    Rule(
        "prefix",
        "The specified user was not able to logon on guest",
        _simple(ErrorKind.GUEST_AUTHENTICATION_FAILED),
    ),
    Rule("prefix", "FsObjQueryInfo failed on", _vbox_file_error),
    Rule("prefix", "File ", _vbox_file_error),
    Rule("prefix", "Invalid machine state: PoweredOff", _state(VmPowerState.STOPPED)),
    Rule("prefix", "Machine in invalid state 1 -- powered off", _state(VmPowerState.STOPPED)),
    Rule("contains", "Machine in invalid state 2 -- saved", _state(VmPowerState.SUSPENDED)),
    Rule("suffix", " is not currently running", _state(VmPowerState.NOT_RUNNING)),
    Rule("contains", "is not running", _state(VmPowerState.NOT_RUNNING)),
    Rule(
        "first_line_suffix",
        "is already locked by a session (or being locked or unlocked)",
        _state(VmPowerState.RUNNING),
    ),
]


def check_vboxmanage(stderr: str) -> Optional[VmError]:
    """Return the error reported in VBoxManage stderr, or None for warnings."""
    text = stderr.strip()
    m = VBOX_ERROR_PREFIX.match(text)
    if not m:
        return None
    return translate(VBOX_RULES, text[m.end():].strip())


# --- vmrun ------------------------------------------------------------------

VMRUN_RULES: List[Rule] = [
    Rule("prefix", "No Vm name provided", _simple(ErrorKind.VM_IS_NOT_SPECIFIED)),
    Rule("prefix", "Cannot open VM: ", _simple(ErrorKind.VM_NOT_FOUND)),
    Rule(
        "prefix",
        "The virtual machine is not powered on: ",
        _state(VmPowerState.NOT_RUNNING),
    ),
    Rule("prefix", "A snapshot with the name already exists", _simple(ErrorKind.SNAPSHOT_EXISTS)),
    Rule(
        "prefix",
        "Invalid user name or password for the guest OS",
        _simple(ErrorKind.AUTHENTICATION_FAILED),
    ),
    Rule(
        "prefix",
        "The VMware Tools are not running in the virtual machine: ",
        _simple(ErrorKind.SERVICE_IS_NOT_RUNNING),
    ),
    Rule("prefix", "Unrecognized command: ", _simple(ErrorKind.UNSUPPORTED_COMMAND)),
]


def check_vmrun(stdout: str, stderr: str) -> Optional[VmError]:
    """vmrun reports errors as ``Error: ...`` on stderr, or on stdout if stderr is empty."""
    text = stderr if stderr else stdout
    if not text.startswith("Error: "):
        return None
    return translate(VMRUN_RULES, text[len("Error: "):].strip())


# --- vmrest -----------------------------------------------------------------

_REDUNDANT = "Redundant parameter: "
_INVALID = "One of the parameters was invalid: "

VMREST_RULES: List[Rule] = [
    Rule("prefix", _REDUNDANT, _after_prefix(_REDUNDANT, ErrorKind.INVALID_PARAMETER)),
    Rule("prefix", _INVALID, _after_prefix(_INVALID, ErrorKind.INVALID_PARAMETER)),
    Rule("equals", "Authentication failed", _simple(ErrorKind.AUTHENTICATION_FAILED)),
    Rule(
        "equals",
        "The virtual machine is not powered on",
        _state(VmPowerState.NOT_RUNNING),
    ),
    Rule("equals", "The virtual network cannot be found", _simple(ErrorKind.NETWORK_NOT_FOUND)),
    Rule(
        "equals",
        "The network adapter cannot be found",
        _simple(ErrorKind.NETWORK_ADAPTOR_NOT_FOUND),
    ),
]


def parse_vmrest_envelope(body: str) -> Optional[str]:
    """Return the ``message`` of a vmrest ``{code, message}`` envelope, if any."""
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    code = data.get("code", data.get("Code"))
    message = data.get("message", data.get("Message"))
    if not isinstance(code, int) or not isinstance(message, str):
        return None
    return message


def check_vmrest(body: str) -> Optional[VmError]:
    """Translate a non-200 vmrest body.

    Returns None when the body is not a recognizable error envelope; the
    caller then reports it together with the HTTP status.
    """
    trimmed = body.strip()
    if trimmed == "404 page not found":
        return VmError(ErrorKind.UNSUPPORTED_COMMAND)
    message = parse_vmrest_envelope(trimmed)
    if message is None:
        return None
    return translate(VMREST_RULES, message)


# --- Hyper-V ----------------------------------------------------------------

_PARAMETER = re.compile(r"^Cannot validate argument on parameter '(?P<name>[^']*)'\.")


def _hyperv_parameter(text: str) -> VmError:
    return VmError(ErrorKind.INVALID_PARAMETER, detail=_PARAMETER.match(text).group("name"))


def _hyperv_access(text: str) -> VmError:
    if " is denied." in text:
        return VmError(ErrorKind.PERMISSION_DENIED)
    return VmError.unexpected(text)


HYPERV_RULES: List[Rule] = [
    Rule(
        "prefix",
        "You do not have the required permission to complete this task.",
        _simple(ErrorKind.PRIVILEGES_REQUIRED),
    ),
    Rule(
        "prefix",
        "Hyper-V was unable to find a virtual machine with name",
        _simple(ErrorKind.VM_NOT_FOUND),
    ),
    Rule(
        "prefix",
        "The operation cannot be performed while the virtual machine is in its current state.",
        _state(VmPowerState.UNKNOWN),
    ),
    Rule(
        "prefix",
        "Unable to find a snapshot matching the given criteria.",
        _simple(ErrorKind.SNAPSHOT_NOT_FOUND),
    ),
    Rule("prefix", "Access to the path", _hyperv_access),
    Rule("regex", _PARAMETER.pattern, _hyperv_parameter),
]

HYPERV_ALREADY_IN_STATE = "WARNING: The virtual machine is already in the specified state."


def check_hyperv(cmdlet: str, stderr: str) -> Optional[VmError]:
    """Errors are written to stderr as ``<Cmdlet> : <message>``."""
    prefix = f"{cmdlet} : "
    if not stderr.startswith(prefix):
        return None
    return translate(HYPERV_RULES, stderr[len(prefix):].strip())
