import logging
import sys

logger = logging.getLogger("ztiaws")


def setup_logging(debug: bool = False, log_file: str | None = None) -> logging.Logger:
    """
    Configure the 'ztiaws' logger.

    Console output only shows warnings and errors unless debug is set.
    A log file, if given, always receives DEBUG records.

    :param debug: Enable debug output on the console (and for botocore).
    :param log_file: Optional path of a file to append log records to.
    :return: The configured root logger of the application.
    """
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if debug else logging.WARNING)
    console.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    logging.getLogger("botocore").setLevel(logging.DEBUG if debug else logging.WARNING)
    return logger


def get_logger(name: str) -> logging.Logger:
    return logger.getChild(name)
