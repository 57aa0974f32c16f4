import logging


def configure_logging(level: str = "INFO") -> None:
    """Configure leveled logging defaults for the application."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
