#!/usr/bin/env python3
"""Tests for VmError."""

import pytest

from hvctrl.errors import ErrorKind, VmError
from hvctrl.models import VmPowerState


class TestVmError:
    def test_equality_by_kind_detail_state(self):
        assert VmError(ErrorKind.VM_NOT_FOUND) == VmError(ErrorKind.VM_NOT_FOUND)
        assert VmError.unknown("a") != VmError.unknown("b")
        assert VmError.invalid_state(VmPowerState.RUNNING) != VmError.invalid_state(
            VmPowerState.STOPPED
        )

    def test_hashable(self):
        errors = {VmError(ErrorKind.TIMEOUT), VmError(ErrorKind.TIMEOUT)}
        assert len(errors) == 1

    def test_message(self):
        assert str(VmError(ErrorKind.TIMEOUT)) == "Timeout"
        assert str(VmError(ErrorKind.INVALID_PARAMETER, detail="VMName")) == "InvalidParameter: VMName"
        assert str(VmError.invalid_state(VmPowerState.SUSPENDED)) == "InvalidPowerState(SUSPENDED)"

    def test_get_invalid_state(self):
        assert VmError.invalid_state(VmPowerState.PAUSED).get_invalid_state() is VmPowerState.PAUSED
        assert VmError(ErrorKind.VM_NOT_FOUND).get_invalid_state() is None

    @pytest.mark.parametrize("error,expected", [
        (VmError.invalid_state(VmPowerState.RUNNING), True),
        (VmError.invalid_state(VmPowerState.STOPPED), False),
        (VmError(ErrorKind.SNAPSHOT_NOT_FOUND), None),
    ])
    def test_is_invalid_state_running(self, error, expected):
        assert error.is_invalid_state_running() is expected

    def test_is_exception(self):
        with pytest.raises(VmError) as exc_info:
            raise VmError.unexpected("garbage")
        assert exc_info.value.kind is ErrorKind.UNEXPECTED_RESPONSE
        assert exc_info.value.detail == "garbage"
