import logging

from controlplane.core.settings import settings


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
    )
    # SQL echo is too noisy outside of debugging sessions.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
