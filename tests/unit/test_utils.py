"""
Tests for console progress and logging setup.
"""

import io
import logging

import pytest

from abcd_model.utils.logging import configure_logging
from abcd_model.utils.progress import ProgressBar, _format_duration


class TestProgressBar:
    def test_rejects_empty_total(self):
        with pytest.raises(ValueError):
            ProgressBar(0)

    def test_completes_with_newline(self):
        stream = io.StringIO()
        bar = ProgressBar(4, description="Calibrating", bar_length=8, stream=stream)
        bar.update(2, extra_message="Best loss: 1")
        assert "|####----|" in stream.getvalue()
        bar.update(5)
        assert bar.state.current == 4
        assert stream.getvalue().endswith("\n")

    def test_duration_format(self):
        assert _format_duration(float("nan")) == "NA"
        assert _format_duration(5.0) == "5.00s"
        assert _format_duration(125.0) == "2m 05.0s"
        assert _format_duration(3725.0) == "1h 02m 05.0s"


class TestConfigureLogging:
    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        configure_logging("debug", log_file=log_file)
        logging.getLogger("abcd_model.test").debug("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello" in log_file.read_text()
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            configure_logging("loud")
