"""Structured logging configuration."""
import logging
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger

from . import config

SERVICE_NAME = "order-api"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that tags every record with the service name."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['service'] = SERVICE_NAME

        # Rename message field for clarity
        if 'message' in log_record:
            log_record['msg'] = log_record.pop('message')


def build_formatter(json_output: bool) -> logging.Formatter:
    if json_output:
        return CustomJsonFormatter(
            '%(levelname)s %(name)s %(message)s',
            rename_fields={
                'levelname': 'level'
            }
        )
    return logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None):
    """Configure structured logging for the application."""
    settings = config.get_settings()
    level = level or settings.log_level
    json_output = settings.log_json if json_output is None else json_output

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(build_formatter(json_output))
    root_logger.addHandler(console_handler)

    # Reduce noise from libraries
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('aiosqlite').setLevel(logging.WARNING)
