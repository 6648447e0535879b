# tests/test_program.py

import pytest

from conftest import make_device
from program import DeviceProgram


def _static_program(**overrides):
    program_config = {"movement": None, "logic": ["consistency_monitor", "warned_entry"]}
    program_config.update(overrides)
    return DeviceProgram(program_config, {"communication_range": 100})


class TestDeviceProgram:

    def test_unknown_model_is_rejected(self):
        with pytest.raises(ValueError, match="Unknown movement model 'teleport'"):
            DeviceProgram({"movement": "teleport"})

    def test_single_logic_name_is_accepted(self):
        program = _static_program(logic="consistency_monitor")
        assert [m.storage_key for m in program.logic] == ["consistency"]

    def test_display_attributes_of_a_cluster(self, harness_factory):
        devices = [make_device(1 + i, 100 + 2 * i, 100) for i in range(7)]
        harness = harness_factory(devices)
        program = _static_program()
        harness.step(program)
        storage = devices[0].storage
        assert storage["node_shape"] == "star"
        assert storage["node_size"] == 10
        harness.step(program)
        storage = devices[0].storage
        assert storage["node_size"] == 20
        assert storage["node_color"] == "green"
        assert storage["consistency"] is True
        assert storage["warned_entry"] is True

    def test_isolated_device(self, harness_factory):
        device = make_device(1)
        harness = harness_factory([device])
        verdicts = harness.step(_static_program())[1]
        assert verdicts == {"consistency": True, "warned_entry": True}
        assert device.storage["node_shape"] == "sphere"
        assert device.storage["node_size"] == 10

    def test_parameters_override_model_config(self, harness_factory):
        program = _static_program(parameters={"warning_count": 0, "cluster_count": 1})
        device = make_device(1)
        harness_factory([device]).step(program)
        assert device.storage["node_shape"] == "star"
        assert device.storage["node_size"] == 20
