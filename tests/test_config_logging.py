import json

from wirespec.core.config import Settings
from wirespec.core.logging import logger, setup_logging


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("WIRESPEC_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("WIRESPEC_PATH_ENCODING", "raw")

    settings = Settings()

    assert settings.log_level == "DEBUG"
    assert settings.path_encoding == "raw"
    assert settings.log_format == "console"


def test_setup_logging_json_sink(capsys):
    setup_logging(Settings(log_level="INFO", log_format="json"))
    try:
        logger.bind(endpoint="get_alias").info("compiled")
        err = capsys.readouterr().err
        record = json.loads(err.strip().splitlines()[-1])
        assert record["record"]["message"] == "compiled"
        assert record["record"]["extra"]["endpoint"] == "get_alias"
    finally:
        logger.remove()
        logger.disable("wirespec")
