"""Tests for persisted preferences and logging setup."""

import logging

import pytest
from PySide6.QtCore import QSettings

from proofmark import ShapeModel
from proofmark.logging_config import LoggingConfig
from proofmark.settings import AnnotationSettings


@pytest.fixture
def ini_path(tmp_path):
    return str(tmp_path / "prefs.ini")


def open_settings(path):
    return AnnotationSettings(QSettings(path, QSettings.Format.IniFormat))


class TestAnnotationSettings:
    def test_defaults(self, settings):
        assert settings.color == "#ef4444"
        assert settings.line_width == 2.0
        assert settings.font_size == 16.0
        assert settings.duration == 4.0
        assert settings.comment_sort == "date"

    def test_values_persist_across_instances(self, ini_path):
        first = open_settings(ini_path)
        first.color = "#06b6d4"
        first.duration = 2.5
        second = open_settings(ini_path)
        assert second.color == "#06b6d4"
        assert second.duration == 2.5

    def test_values_are_clamped(self, settings):
        settings.line_width = 80
        settings.font_size = 1
        settings.duration = 0.1
        assert settings.line_width == 50.0
        assert settings.font_size == 8.0
        assert settings.duration == 0.5

    def test_garbage_falls_back_to_default(self, ini_path):
        raw = QSettings(ini_path, QSettings.Format.IniFormat)
        raw.setValue("drawing/lineWidth", "wide")
        raw.setValue("comments/sortBy", "random")
        raw.sync()
        settings = open_settings(ini_path)
        assert settings.line_width == 2.0
        assert settings.comment_sort == "date"

    def test_unknown_sort_is_not_stored(self, settings):
        settings.comment_sort = "status"
        settings.comment_sort = "size"
        assert settings.comment_sort == "status"


class TestLogging:
    @pytest.fixture
    def configured(self, tmp_path):
        LoggingConfig.setup_logging(tmp_path / "logs")
        yield LoggingConfig.package_logger()
        LoggingConfig.shutdown()

    def test_setup_logging_writes_file(self, tmp_path, configured):
        LoggingConfig.get_logger("proofmark.test").debug("hello file")
        for handler in configured.handlers:
            handler.flush()

        path = LoggingConfig.get_log_file_path()
        assert path == tmp_path / "logs" / "proofmark.log"
        assert "hello file" in path.read_text(encoding="utf-8")

    def test_setup_logging_runs_once(self, tmp_path, configured):
        handler_count = len(configured.handlers)
        LoggingConfig.setup_logging(tmp_path / "elsewhere")
        assert len(configured.handlers) == handler_count
        assert not (tmp_path / "elsewhere").exists()

    def test_shutdown_detaches_handlers(self, tmp_path):
        logger = LoggingConfig.package_logger()
        before = list(logger.handlers)
        LoggingConfig.setup_logging(tmp_path / "logs")
        LoggingConfig.shutdown()
        assert logger.handlers == before
        assert LoggingConfig.get_log_file_path() is None

    def test_unknown_level_is_rejected(self):
        with pytest.raises(ValueError):
            LoggingConfig.add_signal_handler("CHATTY")

    def test_signal_handler_emits_records(self, app):
        handler = LoggingConfig.add_signal_handler("INFO")
        messages = []
        handler.logEmitted.connect(messages.append)
        try:
            logging.getLogger("proofmark.test").warning("careful")
        finally:
            LoggingConfig.remove_signal_handler()
        assert messages == ["[WARNING] careful"]

    def test_models_log_mutations(self, app, caplog):
        caplog.set_level(logging.DEBUG, logger="proofmark")
        model = ShapeModel()
        model.setTool("rect")
        model.pointerDown(0.0, 0.0)
        model.pointerMove(40.0, 40.0)
        model.pointerUp()
        assert "Added rect shape_0" in caplog.text
