import logging
import logging.handlers
from pathlib import Path

LOG_FILE_NAME = "admission_controller.log"


def setup_logging(log_level: str = "INFO", log_dir: Path = None) -> None:
    """Attach a rotating file log and a console log to the root logger.

    Safe to call more than once; later calls are ignored.
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    log_dir = log_dir or Path(__file__).parent.parent / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(logging.DEBUG)

    # Per-decision traces go to the file only
    file_handler = logging.handlers.RotatingFileHandler(
        log_dir / LOG_FILE_NAME, maxBytes=5 * 1024 * 1024, backupCount=3
    )
    file_handler.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    logging.getLogger(__name__).info("Logging initialized (level=%s, dir=%s)", log_level, log_dir)
