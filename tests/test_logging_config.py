import logging
import logging.handlers

from rich.logging import RichHandler

from volmon.config import Settings
from volmon.logging_config import setup_logging


def test_setup_logging_installs_console_and_rotating_file(tmp_path):
    root_logger = logging.getLogger()
    saved_handlers = list(root_logger.handlers)
    saved_level = root_logger.level

    log_file = tmp_path / "logs" / "volmon.log"
    settings = Settings(_env_file=None, log_file_path=str(log_file), log_level="DEBUG", log_retention_days=7)

    try:
        setup_logging(settings)

        handler_types = {type(h) for h in root_logger.handlers}
        assert RichHandler in handler_types
        assert logging.handlers.TimedRotatingFileHandler in handler_types
        assert root_logger.level == logging.DEBUG
        file_handler = next(
            h for h in root_logger.handlers if isinstance(h, logging.handlers.TimedRotatingFileHandler)
        )
        assert file_handler.backupCount == 7
        assert log_file.parent.is_dir()
    finally:
        for handler in root_logger.handlers:
            handler.close()
        root_logger.handlers[:] = saved_handlers
        root_logger.setLevel(saved_level)
