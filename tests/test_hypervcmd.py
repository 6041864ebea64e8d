#!/usr/bin/env python3
"""Tests for the Hyper-V PowerShell backend against a fake process runner."""

import json

import pytest

from conftest import ok
from hvctrl.backends.hypervcmd import HyperVCmd, hyperv_power_state, parse_json_records
from hvctrl.errors import ErrorKind, VmError
from hvctrl.models import Snapshot, Vm, VmPowerState

PREAMBLE = '[Threading.Thread]::CurrentThread.CurrentUICulture = "en-US";'
ALREADY = "WARNING: The virtual machine is already in the specified state.\n"

STATE = "|select State"
SNAPSHOTS = "Get-VMSnapshot"


def state(value):
    return ok(json.dumps({"State": value}))


class States:
    """Get-VM State responder that walks through a list of states."""

    def __init__(self, *values):
        self.values = list(values)

    def __call__(self, command):
        value = self.values.pop(0) if len(self.values) > 1 else self.values[0]
        return state(value)


def script(command):
    """The cmdlet tokens after the culture preamble."""
    return command[5:]


@pytest.fixture
def hyperv(runner, convergence):
    return HyperVCmd(vm_name="win10", runner=runner, convergence=convergence)


@pytest.fixture
def guest(runner, convergence):
    return HyperVCmd(
        vm_name="win10",
        guest_username="Administrator",
        guest_password="it's secret",
        runner=runner,
        convergence=convergence,
    )


class TestHelpers:
    @pytest.mark.parametrize("value,expected", [
        (2, VmPowerState.RUNNING),
        (18, VmPowerState.RUNNING),
        (3, VmPowerState.STOPPED),
        (5, VmPowerState.SUSPENDED),
        (12, VmPowerState.SUSPENDED),
        (6, VmPowerState.PAUSED),
        (9, VmPowerState.UNKNOWN),
        ("Running", VmPowerState.RUNNING),
        ("Off", VmPowerState.STOPPED),
        ("Saved", VmPowerState.SUSPENDED),
        ("Starting", VmPowerState.UNKNOWN),
    ])
    def test_power_state_mapping(self, value, expected):
        assert hyperv_power_state(value) is expected

    def test_json_records(self):
        assert parse_json_records("") == []
        assert parse_json_records('{"Name": "a"}') == [{"Name": "a"}]
        assert parse_json_records('[{"Name": "a"}, {"Name": "b"}]') == [{"Name": "a"}, {"Name": "b"}]

    @pytest.mark.parametrize("text", ["not json", "[1, 2]", '"text"'])
    def test_json_records_unexpected(self, text):
        with pytest.raises(VmError) as exc_info:
            parse_json_records(text)
        assert exc_info.value.kind is ErrorKind.UNEXPECTED_RESPONSE


class TestHyperVPlumbing:
    def test_command_line(self, hyperv):
        assert hyperv.command_line(["Get-VM"]) == [
            "powershell", "-NoProfile", "-NoLogo", "-Command", PREAMBLE, "Get-VM",
        ]

    def test_custom_culture(self, runner):
        hv = HyperVCmd(ui_culture='ja-JP"', runner=runner)
        assert hv.command_line([])[4] == '[Threading.Thread]::CurrentThread.CurrentUICulture = "ja-JP`"";'

    def test_vm_name_is_quoted(self, runner, convergence):
        HyperVCmd(vm_name="Bob's VM", runner=runner, convergence=convergence).start()
        assert script(runner.calls[0]) == ["Start-VM", "@(", "'Bob''s VM'", ")"]

    def test_vm_required(self, runner):
        with pytest.raises(VmError) as exc_info:
            HyperVCmd(runner=runner).start()
        assert exc_info.value.kind is ErrorKind.VM_IS_NOT_SPECIFIED
        assert runner.calls == []

    @pytest.mark.parametrize("stderr,kind", [
        (
            'Start-VM : Hyper-V was unable to find a virtual machine with name "win10".\n',
            ErrorKind.VM_NOT_FOUND,
        ),
        (
            "Start-VM : You do not have the required permission to complete this task. "
            "Contact the administrator of the authorization policy for the computer.\n",
            ErrorKind.PRIVILEGES_REQUIRED,
        ),
    ])
    def test_cmdlet_errors(self, hyperv, runner, stderr, kind):
        runner.responses["Start-VM"] = ok(stderr=stderr, returncode=1)
        with pytest.raises(VmError) as exc_info:
            hyperv.start()
        assert exc_info.value.kind is kind

    def test_parameter_validation_error(self, hyperv, runner):
        runner.responses["Checkpoint-VM"] = ok(
            stderr="Checkpoint-VM : Cannot validate argument on parameter 'SnapshotName'. "
                   "The argument is null or empty.\n",
            returncode=1,
        )
        with pytest.raises(VmError) as exc_info:
            hyperv.take_snapshot("")
        assert exc_info.value == VmError(ErrorKind.INVALID_PARAMETER, detail="SnapshotName")

    def test_unknown_cmdlet_error(self, hyperv, runner):
        runner.responses["Start-VM"] = ok(stderr="Start-VM : Something new.\n", returncode=1)
        with pytest.raises(VmError) as exc_info:
            hyperv.start()
        assert exc_info.value == VmError.unknown("Something new.")

    def test_unrelated_stderr_is_ignored(self, hyperv, runner):
        runner.responses["Start-VM"] = ok(stderr="progress: 50%\n")
        hyperv.start()


class TestHyperVVm:
    def test_list_vms(self, hyperv, runner):
        runner.responses["|select VMId"] = ok(json.dumps([
            {"VMId": "1111", "Name": "win10"},
            {"VMId": "2222", "Name": "ubuntu"},
        ]))
        assert hyperv.list_vms() == [Vm(id="1111"), Vm(id="2222")]
        assert script(runner.calls[0]) == ["Get-VM", "|select VMId, Name|ConvertTo-Json"]

    def test_list_single_vm(self, hyperv, runner):
        runner.responses["|select VMId"] = ok('{"VMId": "1111", "Name": "win10"}')
        assert [vm.name for vm in hyperv.list_vms()] == ["win10"]

    def test_set_vm_by_id(self, hyperv, runner):
        runner.responses["|select VMId"] = ok('[{"VMId": "2222", "Name": "ubuntu"}]')
        hyperv.set_vm_by_id("2222")
        assert hyperv.vm_name == "ubuntu"

    def test_set_vm_by_name_not_found(self, hyperv, runner):
        runner.responses["|select VMId"] = ok("")
        with pytest.raises(VmError) as exc_info:
            hyperv.set_vm_by_name("ubuntu")
        assert exc_info.value.kind is ErrorKind.VM_NOT_FOUND

    def test_set_vm_by_path_unsupported(self, hyperv):
        with pytest.raises(VmError) as exc_info:
            hyperv.set_vm_by_path("C:\\vms\\win10.vmcx")
        assert exc_info.value.kind is ErrorKind.UNSUPPORTED_COMMAND


class TestHyperVPower:
    def test_power_state(self, hyperv, runner):
        runner.responses[STATE] = state(2)
        assert hyperv.power_state() is VmPowerState.RUNNING
        assert script(runner.calls[0]) == ["Get-VM", "'win10'", "|select State|ConvertTo-Json"]

    def test_power_state_unexpected(self, hyperv, runner):
        runner.responses[STATE] = ok('{"Name": "win10"}')
        with pytest.raises(VmError) as exc_info:
            hyperv.power_state()
        assert exc_info.value.kind is ErrorKind.UNEXPECTED_RESPONSE

    def test_start_already_running(self, hyperv, runner):
        runner.responses["Start-VM"] = ok(ALREADY)
        with pytest.raises(VmError) as exc_info:
            hyperv.start()
        assert exc_info.value == VmError.invalid_state(VmPowerState.RUNNING)

    def test_stop_converges(self, hyperv, runner, clock):
        runner.responses[STATE] = States(2, 3)
        hyperv.stop(timeout=10)
        stops = [script(c) for c in runner.calls if "Stop-VM" in c]
        assert stops == [["Stop-VM", "-Force", "@(", "'win10'", ")"]] * 2
        assert clock.sleeps == [1.0]

    def test_stop_already_off(self, hyperv, runner):
        runner.responses["Stop-VM"] = ok(ALREADY)
        runner.responses[STATE] = state(3)
        hyperv.stop()

    def test_stop_in_wrong_state(self, hyperv, runner):
        runner.responses["Stop-VM"] = ok(
            stderr="Stop-VM : The operation cannot be performed while the virtual machine "
                   "is in its current state.\n",
            returncode=1,
        )
        with pytest.raises(VmError) as exc_info:
            hyperv.stop()
        assert exc_info.value == VmError.invalid_state(VmPowerState.UNKNOWN)

    def test_hard_stop(self, hyperv, runner, clock):
        runner.responses[STATE] = state(3)
        hyperv.hard_stop()
        assert script(runner.calls[0]) == ["Stop-VM", "-Force", "@(", "'win10'", ")", "-TurnOff"]
        assert len([c for c in runner.calls if "Stop-VM" in c]) == 1
        assert clock.sleeps == []

    @pytest.mark.parametrize("method", ["stop", "hard_stop"])
    def test_stop_saved_vm_reports_suspended(self, hyperv, runner, clock, method):
        runner.responses["Stop-VM"] = ok(ALREADY)
        runner.responses[STATE] = state("Saved")
        with pytest.raises(VmError) as exc_info:
            getattr(hyperv, method)()
        assert exc_info.value == VmError.invalid_state(VmPowerState.SUSPENDED)
        assert len([c for c in runner.calls if "Stop-VM" in c]) == 1
        assert clock.sleeps == []

    def test_stop_timeout(self, hyperv, runner):
        runner.responses[STATE] = state(2)
        with pytest.raises(VmError) as exc_info:
            hyperv.stop(timeout=3)
        assert exc_info.value.kind is ErrorKind.TIMEOUT
        assert len([c for c in runner.calls if "Stop-VM" in c]) >= 2

    def test_suspend_saves(self, hyperv, runner):
        runner.responses[STATE] = state(5)
        hyperv.suspend()
        assert script(runner.calls[0])[-1] == "-Save"

    def test_suspend_already_saved(self, hyperv, runner):
        runner.responses["Stop-VM"] = ok(ALREADY)
        runner.responses[STATE] = state("Saved")
        hyperv.suspend()

    def test_reboot(self, hyperv, runner):
        runner.responses[STATE] = state(3)
        hyperv.reboot(timeout=10)
        assert script(runner.calls[-1]) == ["Start-VM", "@(", "'win10'", ")"]

    @pytest.mark.parametrize("method,tokens", [
        ("hard_reboot", ["Restart-VM", "-Force", "-Confirm:$false", "@(", "'win10'", ")"]),
        ("pause", ["Suspend-VM", "@(", "'win10'", ")"]),
        ("unpause", ["Resume-VM", "@(", "'win10'", ")"]),
        ("resume", ["Start-VM", "@(", "'win10'", ")"]),
    ])
    def test_single_cmdlet_transitions(self, hyperv, runner, method, tokens):
        getattr(hyperv, method)()
        assert [script(c) for c in runner.calls] == [tokens]

    def test_pause_already_paused(self, hyperv, runner):
        runner.responses["Suspend-VM"] = ok(ALREADY)
        with pytest.raises(VmError) as exc_info:
            hyperv.pause()
        assert exc_info.value == VmError.invalid_state(VmPowerState.PAUSED)


class TestHyperVSnapshots:
    def test_list(self, hyperv, runner):
        runner.responses[SNAPSHOTS] = ok(json.dumps([
            {"Id": "aaaa", "Name": "clean", "Notes": ""},
            {"Id": "bbbb", "Name": "tools", "Notes": "guest services"},
        ]))
        snapshots = hyperv.list_snapshots()
        assert snapshots == [Snapshot(id="aaaa"), Snapshot(id="bbbb")]
        assert snapshots[1].detail == "guest services"

    def test_take(self, hyperv, runner):
        hyperv.take_snapshot("it's clean")
        assert script(runner.calls[0]) == [
            "Checkpoint-VM", "@(", "'win10'", ")", "-SnapshotName", "'it''s clean'",
        ]

    def test_revert(self, hyperv, runner):
        runner.responses[SNAPSHOTS] = ok('{"Id": "aaaa", "Name": "clean", "Notes": ""}')
        hyperv.revert_snapshot("clean")
        assert script(runner.calls[-1]) == [
            "Restore-VMSnapshot", "-VMName", "'win10'", "-Confirm:$false -Name", "'clean'",
        ]

    def test_delete(self, hyperv, runner):
        runner.responses[SNAPSHOTS] = ok('{"Id": "aaaa", "Name": "clean", "Notes": ""}')
        hyperv.delete_snapshot("clean")
        assert script(runner.calls[-1])[0] == "Remove-VMSnapshot"

    def test_delete_missing(self, hyperv, runner):
        runner.responses[SNAPSHOTS] = ok("")
        with pytest.raises(VmError) as exc_info:
            hyperv.delete_snapshot("clean")
        assert exc_info.value.kind is ErrorKind.SNAPSHOT_NOT_FOUND
        assert len(runner.calls) == 1


class TestHyperVGuest:
    def test_exec_cmd(self, guest, runner):
        guest.exec_cmd(["C:\\Windows\\notepad.exe", "it's.txt"])
        line = " ".join(runner.calls[0])
        assert "ConvertTo-SecureString 'it''s secret' -AsPlainText -Force;" in line
        assert "'Administrator' , $password);" in line
        assert "$sess = New-PSSession -VMName 'win10' -Credential $cred;" in line
        assert "Invoke-Command -Session $sess -ScriptBlock { & 'C:\\Windows\\notepad.exe' 'it''s.txt' };" in line
        assert line.endswith("Remove-PSSession $sess;")

    def test_exec_cmd_without_credentials(self, hyperv, runner):
        with pytest.raises(VmError) as exc_info:
            hyperv.exec_cmd(["cmd.exe"])
        assert exc_info.value.kind is ErrorKind.UNSUPPORTED_COMMAND
        assert runner.calls == []

    def test_exec_cmd_empty(self, guest):
        with pytest.raises(VmError) as exc_info:
            guest.exec_cmd([])
        assert exc_info.value.kind is ErrorKind.INVALID_PARAMETER

    def test_session_error(self, guest, runner):
        runner.responses["Invoke-Command"] = ok(
            stderr="New-PSSession : Access to the path 'C:\\x' is denied.\n", returncode=1
        )
        with pytest.raises(VmError) as exc_info:
            guest.exec_cmd(["cmd.exe"])
        assert exc_info.value.kind is ErrorKind.PERMISSION_DENIED

    def test_copy_to_guest(self, hyperv, runner):
        hyperv.copy_from_host_to_guest("C:\\host\\a.txt", "C:\\guest\\a.txt")
        assert script(runner.calls[0]) == [
            "Copy-VMFile", "@(", "'win10'", ")", "-Force",
            "-SourcePath", "'C:\\host\\a.txt'",
            "-DestinationPath", "'C:\\guest\\a.txt'",
            "-FileSource Host", "-CreateFullPath",
        ]

    def test_copy_from_guest(self, guest, runner):
        guest.copy_from_guest_to_host("C:\\guest\\a.txt", "C:\\host\\a.txt")
        line = " ".join(runner.calls[0])
        assert "Copy-Item -FromSession $sess -Path 'C:\\guest\\a.txt' -Destination 'C:\\host\\a.txt'" in line

    def test_copy_from_guest_requires_credentials(self, hyperv):
        with pytest.raises(VmError) as exc_info:
            hyperv.copy_from_guest_to_host("C:\\a", "C:\\b")
        assert exc_info.value.kind is ErrorKind.CREDENTIAL_IS_NOT_SPECIFIED
