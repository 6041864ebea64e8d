#!/usr/bin/env python3
"""Tests for the shared data models."""

import pytest

from hvctrl.models import (
    Nic,
    NicKind,
    NicType,
    SharedFolder,
    Snapshot,
    Vm,
    VmPowerState,
)


class TestVmEquality:
    """Vm equality goes by id, then path, then name."""

    def test_id_decides_when_both_have_it(self):
        assert Vm(id="1", name="a") == Vm(id="1", name="b")
        assert Vm(id="1", name="a") != Vm(id="2", name="a")

    def test_path_used_when_id_missing(self):
        assert Vm(path="/vms/a.vmx", name="x") == Vm(path="/vms/a.vmx", name="y")
        assert Vm(path="/vms/a.vmx") != Vm(path="/vms/b.vmx")

    def test_name_used_last(self):
        assert Vm(name="win10") == Vm(name="win10")
        assert Vm(name="win10") != Vm(name="win11")

    def test_id_takes_priority_over_name(self):
        assert Vm(id="1", name="same") != Vm(id="2", name="same")

    def test_no_shared_key_is_not_equal(self):
        assert Vm(id="1") != Vm(name="win10")
        assert Vm() != Vm()

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(Vm(id="1"))

    def test_dict_round_trip(self):
        vm = Vm(id="1", name="win10", path="C:\\vms\\win10.vmx")
        data = vm.to_dict()
        assert data == {"id": "1", "name": "win10", "path": "C:\\vms\\win10.vmx"}
        restored = Vm.from_dict(data)
        assert (restored.id, restored.name, restored.path) == (vm.id, vm.name, vm.path)


class TestSnapshotEquality:
    def test_id_then_name(self):
        assert Snapshot(id="u1", name="a") == Snapshot(id="u1", name="b")
        assert Snapshot(name="clean") == Snapshot(name="clean", detail="other")
        assert Snapshot(id="u1") != Snapshot(name="clean")

    def test_in_list(self):
        """``in`` uses the priority equality, which is how existence checks work."""
        snapshots = [Snapshot(id="u1", name="clean"), Snapshot(id="u2", name="dirty")]
        assert Snapshot(name="dirty") in snapshots
        assert Snapshot(name="missing") not in snapshots


class TestNicType:
    @pytest.mark.parametrize("value,kind", [
        ("bridged", NicKind.BRIDGE),
        ("bridge", NicKind.BRIDGE),
        ("NAT", NicKind.NAT),
        ("hostonly", NicKind.HOST_ONLY),
        ("hostOnly", NicKind.HOST_ONLY),
        ("host-only", NicKind.HOST_ONLY),
        ("custom", NicKind.CUSTOM),
    ])
    def test_parse(self, value, kind):
        assert NicType.parse(value).kind is kind

    def test_parse_custom_keeps_network(self):
        assert NicType.parse("custom", "vmnet2") == NicType.custom("vmnet2")

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            NicType.parse("wifi")

    def test_str(self):
        assert str(NicType.nat()) == "nat"
        assert str(NicType.custom("vmnet3")) == "custom(vmnet3)"


class TestNic:
    def test_dict_round_trip(self):
        nic = Nic(id="1", name="vmnet8", ty=NicType.custom("vmnet8"), mac_address="00:0c:29:aa:bb:cc")
        data = nic.to_dict()
        assert data["type"] == "custom"
        assert data["network"] == "vmnet8"
        assert Nic.from_dict(data) == nic

    def test_from_dict_without_type(self):
        assert Nic.from_dict({"id": "2"}).ty is None


class TestSharedFolder:
    def test_defaults(self):
        folder = SharedFolder(id="share")
        assert folder.is_readonly is False
        assert SharedFolder.from_dict(folder.to_dict()) == folder


class TestVmPowerState:
    def test_only_running_is_running(self):
        assert VmPowerState.RUNNING.is_running()
        for state in VmPowerState:
            if state is not VmPowerState.RUNNING:
                assert not state.is_running()
