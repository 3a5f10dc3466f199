import logging

from app.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> None:
    """Configure the root logger once for the process."""
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
    # redis-py logs every retry at DEBUG; keep it quiet unless asked for
    logging.getLogger("redis").setLevel(
        max(logging.WARNING, logging.getLogger().level)
    )
