"""
Tests for logger functionality.
"""

from crmdedupe.logger import StructuredLogger, get_logger, reset_logger


class TestStructuredLogger:
    """Test structured logging functionality."""

    def test_logger_creation(self, tmp_path):
        """Logger should be created with fresh metrics."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        assert logger.logger.name == "test"
        assert logger.metrics["api_calls"] == 0

    def test_log_with_context(self, tmp_path):
        """Context is appended to the message as JSON."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.warning("Update of missing contact", contact_id=42, field="external_identifier")

        content = next(tmp_path.glob("*.log")).read_text()
        assert 'Update of missing contact | Context: {"contact_id": 42, "field": "external_identifier"}' in content

    def test_debug_always_reaches_file(self, tmp_path):
        logger = StructuredLogger(name="test", level="ERROR", log_dir=tmp_path, enable_console=False)

        logger.debug("XMERGE: Moved Im 'bob (Home)'")

        assert "XMERGE: Moved Im" in next(tmp_path.glob("*.log")).read_text()

    def test_metrics_tracking(self, tmp_path):
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.record_api_call()
        logger.record_api_call()
        logger.record_api_call()
        logger.record_api_failure("HTTPError_503")
        logger.record_api_failure("HTTPError_503")
        logger.record_api_failure("APIError")

        metrics = logger.get_metrics()
        assert metrics["api_calls"] == 3
        assert metrics["api_failures"] == 3
        assert metrics["errors_by_type"] == {"HTTPError_503": 2, "APIError": 1}

    def test_get_metrics_returns_copy(self, tmp_path):
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)
        metrics = logger.get_metrics()
        metrics["errors_by_type"]["Fake"] = 1
        assert logger.metrics["errors_by_type"] == {}

    def test_metrics_summary(self, tmp_path):
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)
        logger.record_api_call()
        logger.record_api_failure("Timeout")

        logger.log_metrics_summary()

        content = next(tmp_path.glob("*.log")).read_text()
        assert "API Calls: 1 (1 failed)" in content
        assert "Timeout: 1" in content


class TestGlobalLogger:
    """Test global logger singleton."""

    def test_get_logger_singleton(self, tmp_path):
        reset_logger()
        try:
            logger1 = get_logger(name="test-global", log_dir=tmp_path, enable_console=False)
            logger2 = get_logger()
            assert logger1 is logger2
        finally:
            reset_logger()

    def test_reset_logger(self, tmp_path):
        reset_logger()
        try:
            logger1 = get_logger(name="test-global", log_dir=tmp_path, enable_console=False)
            logger1.record_api_call()
            reset_logger()
            logger2 = get_logger(name="test-global", log_dir=tmp_path, enable_console=False)
            assert logger2 is not logger1
            assert logger2.metrics["api_calls"] == 0
        finally:
            reset_logger()
