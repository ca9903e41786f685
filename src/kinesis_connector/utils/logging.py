"""Logging setup for the connector."""

import json
import logging
import sys
from datetime import datetime, timezone

from ..config.settings import LoggingConfig

# Extra attributes copied into JSON output when a record carries them
CONTEXT_FIELDS = ('service', 'stream', 'shard_id', 'step')

TEXT_FORMAT = "%(asctime)s [%(levelname)s] (%(threadName)s) %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'thread': record.threadName,
            'message': record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ServiceContextFilter(logging.Filter):
    """Stamps every record with the service name."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service_name
        return True


def _handler_for(output: str) -> logging.Handler:
    if output.lower() == 'stdout':
        return logging.StreamHandler(sys.stdout)
    if output.lower() == 'stderr':
        return logging.StreamHandler(sys.stderr)
    return logging.FileHandler(output)


def setup_logging(config: LoggingConfig, service_name: str = "kinesis-connector") -> logging.Logger:
    """
    Setup logging configuration for the connector.

    Args:
        config: Logging configuration
        service_name: Name of the service for log context

    Returns:
        The connector's root logger, to be handed to components
    """
    handler = _handler_for(config.output)
    if config.format.lower() == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    handler.addFilter(ServiceContextFilter(service_name))

    level = getattr(logging, config.level.upper(), None)
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Reduce noise from the AWS SDK
    logging.getLogger('boto3').setLevel(logging.WARNING)
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    logger = logging.getLogger("kinesis_connector")
    logger.info(
        f"Logging configured: level={config.level}, format={config.format}, "
        f"output={config.output}, service={service_name}"
    )
    return logger
