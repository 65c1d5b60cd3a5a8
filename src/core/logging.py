"""
Logging 설정.

모듈별 logger = logging.getLogger(__name__), 설정은 여기서 한 번만.
"""

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(config: dict) -> None:
    """
    루트 로거 설정.

    Args:
        config: 설정 (logging.level, logging.format)
    """
    logging_cfg = config.get("logging", {})
    level_name = str(logging_cfg.get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format=logging_cfg.get("format", LOG_FORMAT),
        datefmt=LOG_DATE_FORMAT,
    )
    logging.getLogger("src").setLevel(level)
