"""
Log configuration and redaction.
"""
import logging

from car_reliability.core.logging_config import sanitize_log_data, setup_logging


def test_sanitize_log_data_redacts_nested_secrets():
    data = {
        "id": "cs_1",
        "client_secret": "cs_secret_abc",
        "metadata": {"user_id": "7", "access_token": "tok"},
        "Authorization": "Bearer abc",
    }

    sanitized = sanitize_log_data(data)

    assert sanitized["id"] == "cs_1"
    assert sanitized["client_secret"] == "***REDACTED***"
    assert sanitized["metadata"] == {"user_id": "7", "access_token": "***REDACTED***"}
    assert sanitized["Authorization"] == "***REDACTED***"
    assert data["client_secret"] == "cs_secret_abc"


def test_setup_logging_writes_rotating_file(tmp_path):
    root = logging.getLogger()
    previous_handlers, previous_level = list(root.handlers), root.level
    try:
        setup_logging(log_level="debug", log_dir=str(tmp_path / "logs"))

        assert root.level == logging.DEBUG
        assert (tmp_path / "logs" / "car_reliability.log").exists()
        assert logging.getLogger("stripe").level == logging.WARNING
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)
