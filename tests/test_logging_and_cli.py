# tests/test_logging_and_cli.py

import json
import logging

import pytest

import main
from config import Config
from logging_utils import _coerce_level, config_hash, configure_logging, get_logger
from plugin_registry import get_logic_model, load_plugins_from_config


@pytest.fixture
def restore_logging():
    """Swap the handlers installed by `configure_logging` back for the previous ones."""
    root = logging.getLogger()
    previous_handlers = list(root.handlers)
    previous_level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in previous_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in previous_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(previous_level)
    logging.getLogger("sim").setLevel(logging.NOTSET)
    logging.getLogger("sim.round").setLevel(logging.NOTSET)


def _write_config(tmp_path, **environment):
    data = {
        "environment": {
            "time_limit": 3,
            "groups": [{"id": 0, "size": 1, "speed": 20}, {"id": 1, "size": 3, "radius": 10, "speed": 5}],
            "logging": {"enabled": False, "to_console": False},
        }
    }
    data["environment"].update(environment)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    return path


class TestLogging:

    def test_coerce_level(self):
        assert _coerce_level("debug") == logging.DEBUG
        assert _coerce_level(logging.ERROR) == logging.ERROR
        assert _coerce_level("chatty") == logging.INFO
        assert _coerce_level(None, logging.WARNING) == logging.WARNING

    def test_get_logger_namespace(self):
        assert get_logger("round").name == "sim.round"
        assert get_logger("sim.exchange").name == "sim.exchange"
        assert get_logger("").name == "sim"

    def test_file_logging_records_config(self, tmp_path, restore_logging):
        config_path = _write_config(tmp_path)
        log_path = configure_logging(
            {"enabled": True, "level": "INFO", "to_console": False, "components": {"round": "ERROR"}},
            config_path=config_path,
            project_root=tmp_path,
        )
        digest = config_hash(config_path)
        assert log_path.parent == tmp_path / "logs"
        assert log_path.name.endswith(f"_{digest}.log")
        assert get_logger("round").level == logging.ERROR
        get_logger("test").info("hello from the test")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello from the test" in log_path.read_text()
        assert list((tmp_path / "logs" / "configs").glob(f"*_{digest}_config.json"))
        assert digest in (tmp_path / "logs" / "logs_configs_mapping.csv").read_text()

    def test_disabled_logging_writes_no_file(self, tmp_path, restore_logging):
        assert configure_logging({"to_console": False}, project_root=tmp_path) is None
        assert not (tmp_path / "logs").exists()


class TestCli:

    def test_runs_a_config_file(self, tmp_path, restore_logging):
        results = tmp_path / "results"
        config_path = _write_config(tmp_path, results={"base_path": str(results), "archive": False})
        main.main(["-c", str(config_path)])
        run_folder = results / "config_folder_0" / "run_1"
        assert (run_folder / "aggregates.csv").exists()
        assert (run_folder / "devices.csv").exists()

    def test_invalid_config_exits_with_error(self, tmp_path, restore_logging):
        config_path = _write_config(tmp_path, groups=[{"id": 0, "size": 100}])
        with pytest.raises(SystemExit) as excinfo:
            main.main(["-c", str(config_path)])
        assert excinfo.value.code == 1

    def test_missing_config_argument(self, restore_logging):
        with pytest.raises(SystemExit) as excinfo:
            main.main([])
        assert excinfo.value.code == 1


class TestPlugins:

    def test_example_plugin_registers_a_monitor(self, harness_factory, device_factory):
        config = Config(new_data={"plugins": ["plugins.examples.leader_range_plugin"], "environment": {}})
        load_plugins_from_config(config)
        monitor = get_logic_model("leader_in_range", {"communication_range": 50})
        assert monitor is not None
        leader = device_factory(100, 0, 0)
        follower = device_factory(101, 10, 0)
        harness = harness_factory([leader, follower])
        program = lambda ctx: monitor.evaluate(ctx, {})
        verdicts = [harness.step(program)]
        follower.set_position(follower.get_position() * 50)
        verdicts += harness.run(program, 2)
        assert [v[101] for v in verdicts] == [True, True, False]
        assert all(v[100] for v in verdicts)

    def test_missing_plugin_module_is_logged(self, caplog):
        config = Config(new_data={"environment": {"plugins": ["no.such.plugin"]}})
        with caplog.at_level(logging.ERROR, logger="sim.plugins"):
            load_plugins_from_config(config)
        assert "no.such.plugin" in caplog.text
