# app/logging_setup.py
import logging
import sys


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Налаштовує логер застосунку з виводом у консоль.

    Args:
        log_level (str): Рівень логування ('DEBUG', 'INFO', 'WARNING', ...).

    Returns:
        logging.Logger: Кореневий логер пакета app.
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger("app")
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    logger.debug("Logging initialized, level %s", log_level)
    return logger
