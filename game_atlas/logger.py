import logging
import sys

from .platform_utils import APP_DATA_DIR


def setup_logger(log_file_name="game_atlas.log"):
    """
    Setups the initial logger.
    param: log_file_name: filename to be used for the logfile.
    return: logger instance created.
    """
    logger = logging.getLogger("GameAtlas")

    # Check if the logger has already been configured
    if not logger.handlers:
        logger.setLevel(logging.DEBUG)

        log_format = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(log_format)
        logger.addHandler(console_handler)

        log_dir = APP_DATA_DIR / "logs"
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_dir / log_file_name, encoding="utf-8")
            file_handler.setFormatter(log_format)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"File logging disabled, cannot open {log_dir}: {e}")

        # Prevent propagation to avoid duplicate logs
        logger.propagate = False

    return logger
