import logging

import pytest

from upload_server.logger_config import setup_logger, structured_log


@pytest.fixture
def server_logger():
    logger = setup_logger()
    original_handlers = list(logger.handlers)
    original_level = logger.level
    yield logger
    for handler in logger.handlers[:]:
        if handler not in original_handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(original_level)


def test_log_dir_added_after_first_setup(server_logger, tmp_path):
    """Test a log directory passed at startup still gets a file handler."""
    logs_dir = tmp_path / "logs"
    logger = setup_logger("DEBUG", str(logs_dir))

    file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1
    assert logger.level == logging.DEBUG

    logger.info(structured_log("Written to file", size=5))
    file_handlers[0].flush()
    assert "Written to file size=5" in (logs_dir / "upload_server.log").read_text()


def test_setup_is_idempotent(server_logger, tmp_path):
    setup_logger("INFO", str(tmp_path / "logs"))
    handler_count = len(server_logger.handlers)

    setup_logger("INFO", str(tmp_path / "logs"))
    setup_logger()

    assert len(server_logger.handlers) == handler_count


def test_structured_message_without_fields():
    assert str(structured_log("plain message")) == "plain message"
