import logging
import os

import coloredlogs

LOG_FORMAT = '%(asctime)s.%(msecs)03d [%(levelname)s] (%(filename)s:%(lineno)s) %(message)s'
DATE_FORMAT = '%H:%M:%S'


def init_logging(level: str | int = 'INFO', *, quiet_access_log: bool = False):
    """Configure root logging for the local dataset tools.

    `LOG_LEVEL` in the environment takes precedence over `level`.
    """
    if isinstance(level, int):
        level = logging.getLevelName(level)

    log_level = os.getenv('LOG_LEVEL', level).upper()
    logging.basicConfig(level=log_level, format=LOG_FORMAT, datefmt=DATE_FORMAT, force=True)
    coloredlogs.install(level=log_level, fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    if quiet_access_log:
        # Range requests from a scrubbing <video> produce one access line per seek.
        logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
