import logging

from simtrainer.core.settings import settings

logger = logging.getLogger("simtrainer")


def setup_logging(level: str | None = None) -> None:
    """Configure the project logger once; later calls only adjust the level."""
    logger.setLevel((level or settings.log_level).upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
