import logging
import sys

def setup_logger(level=logging.DEBUG):
    logger = logging.getLogger("DuoMix")
    logger.setLevel(level)

    # Console Handler
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)

    # Formatter
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    ch.setFormatter(formatter)

    # Modules log through getLogger("DuoMix"); only one handler is attached
    if not logger.handlers:
        logger.addHandler(ch)

    return logger

logger = setup_logger()
