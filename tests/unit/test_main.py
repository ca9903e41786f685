"""Tests for the command line entry point."""

from unittest.mock import Mock, patch

import pytest

from kinesis_connector.config.settings import LoggingConfig, RuntimeSettings
from kinesis_connector.main import load_pipeline, main, run_connector
from kinesis_connector.samples.json_pipeline import JsonPipeline


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("kinesis_connector.main.setup_logging") as setup_logging:
        yield setup_logging


@pytest.fixture
def settings(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    return RuntimeSettings()


def test_load_pipeline():
    assert isinstance(load_pipeline("kinesis_connector.samples.json_pipeline:JsonPipeline"), JsonPipeline)


def test_load_pipeline_requires_class():
    with pytest.raises(ValueError):
        load_pipeline("kinesis_connector.samples.json_pipeline")


def test_bootstrap_failure_exit_status(settings, tmp_path, capsys):
    status = run_connector(str(tmp_path / "missing.properties"), Mock(), settings)

    assert status == 1
    assert "Bootstrap failed at step 'load configuration'" in capsys.readouterr().err


def test_bad_pipeline_exit_status(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)

    status = main(["connector.properties", "--pipeline", "no_such_module:Pipeline"])

    assert status == 2
    assert "no_such_module:Pipeline" in capsys.readouterr().err


def test_interrupt_shuts_down(settings, quiet_logging):
    connector = Mock()
    connector.configuration.logging = LoggingConfig(level="DEBUG")
    connector.run.side_effect = KeyboardInterrupt

    with patch("kinesis_connector.main.ConnectorBootstrap") as bootstrap_cls:
        bootstrap_cls.return_value.bootstrap.return_value = connector
        status = run_connector("connector.properties", Mock(), settings)

    assert status == 0
    connector.shutdown.assert_called_once_with(timeout=10.0)
    assert quiet_logging.call_args.args[0].level == "DEBUG"


def test_environment_overrides_configured_log_level(monkeypatch, tmp_path, quiet_logging):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("KINESIS_CONNECTOR_LOG_LEVEL", "WARNING")
    connector = Mock()
    connector.configuration.logging = LoggingConfig(level="DEBUG", format="json")

    with patch("kinesis_connector.main.ConnectorBootstrap") as bootstrap_cls:
        bootstrap_cls.return_value.bootstrap.return_value = connector
        run_connector("connector.properties", Mock(), RuntimeSettings())

    applied = quiet_logging.call_args.args[0]
    assert applied.level == "WARNING"
    assert applied.format == "json"


def test_json_sample_entry_point():
    from kinesis_connector.samples import json_executor

    with patch.object(json_executor, "run_connector", return_value=0) as run:
        assert json_executor.main() == 0

    config_source, pipeline = run.call_args.args
    assert config_source == "json.properties"
    assert isinstance(pipeline, JsonPipeline)
