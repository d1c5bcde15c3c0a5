"""
Control logging for the sync runs
"""

import logging
import sys
from datetime import datetime
from logging import FileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)8s] %(message)s (%(filename)s:%(lineno)s)"


class LoggingService:
    def __init__(self, logging_level: str | int = logging.INFO, log_dir: Path | None = None):
        log_formatter = logging.Formatter(fmt=LOG_FORMAT)

        # force=False because otherwise the pytest console logger stream handler gets deleted
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT, force=False, encoding="utf-8", stream=sys.stderr)

        self.logging_level = logging_level

        # root logger is the template for all other loggers created later
        root_logger = logging.getLogger(name=None)
        root_logger.setLevel(self.logging_level)

        self.file_handler: FileHandler | None = None
        if log_dir:
            log_dir.mkdir(parents=True, exist_ok=True)
            logfile = Path(log_dir, f"bucketsync_{datetime.now().astimezone().strftime('%Y%m%d')}.log")

            self.file_handler = FileHandler(filename=logfile, mode="a", encoding="utf-8", delay=True)
            self.file_handler.setFormatter(log_formatter)
            root_logger.addHandler(self.file_handler)

        self.other_loggers()

        logging.debug(f"registered handlers: {logging.root.handlers}")

    def other_loggers(self):
        """mute some logger by raising their log level"""

        for name in [
            "boto3",
            "botocore",
            "s3transfer",
            "urllib3",
        ]:
            lgr = logging.getLogger(name=name)
            lgr.setLevel(logging.INFO)
            lgr.propagate = True

        for name in [
            "PIL",
            "asyncio",
        ]:
            lgr = logging.getLogger(name=name)
            lgr.setLevel(logging.WARNING)
            lgr.propagate = True

    def teardown(self):
        if self.file_handler:
            logging.getLogger(name=None).removeHandler(self.file_handler)
            self.file_handler.close()
