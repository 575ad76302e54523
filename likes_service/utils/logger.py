import logging
import sys
from typing import Optional
from pathlib import Path

def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get or create logger with consistent configuration.

    Args:
        name: Logger name (usually __name__ of calling module)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name or __name__)

    # Only configure if no handlers are set
    if not logger.handlers:
        try:
            from ..config import get_settings
            settings = get_settings()

            log_level = settings.LOG_LEVEL.upper()
            formatter = logging.Formatter(settings.LOG_FORMAT)

            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            console_handler.setLevel(getattr(logging, log_level))
            logger.addHandler(console_handler)

            # File logging is optional, an empty LOG_FILE turns it off
            if settings.LOG_FILE:
                log_dir = Path('logs')
                log_dir.mkdir(parents=True, exist_ok=True)
                log_path = log_dir / settings.LOG_FILE

                file_handler = logging.FileHandler(str(log_path))
                file_handler.setFormatter(formatter)
                file_handler.setLevel(getattr(logging, log_level))
                logger.addHandler(file_handler)
                logger.debug(f"Log file path: {log_path.absolute()}")

            logger.setLevel(getattr(logging, log_level))
            logger.debug(f"Logger initialized for {name} at level {log_level}")

        except Exception as e:
            # Settings may be unavailable (e.g. missing secrets); keep console logging
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
            logger.addHandler(console_handler)
            logger.setLevel(logging.INFO)
            logger.debug(f"Falling back to console logging: {str(e)}")

    return logger
