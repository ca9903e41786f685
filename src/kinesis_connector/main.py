"""Command line entry point for the Kinesis connector."""

import argparse
import importlib
import sys
from typing import List, Optional

from .bootstrap import BootstrapOptions, ConnectorBootstrap
from .config.settings import LoggingConfig, RuntimeSettings
from .errors import ConnectorError
from .pipeline import Pipeline
from .utils.logging import setup_logging

DEFAULT_PIPELINE = "kinesis_connector.samples.json_pipeline:JsonPipeline"


def load_pipeline(path: str) -> Pipeline:
    """Instantiate a pipeline from a ``module:ClassName`` path."""
    module_name, _, attr = path.partition(":")
    if not attr:
        raise ValueError(f"Pipeline must be given as module:ClassName, got '{path}'")
    return getattr(importlib.import_module(module_name), attr)()


def run_connector(config_source: str, pipeline: Pipeline, settings: Optional[RuntimeSettings] = None) -> int:
    """
    Bootstrap and run a connector until interrupted.

    Returns:
        Process exit status: 0 on clean shutdown, 1 if bootstrap failed
    """
    settings = settings or RuntimeSettings()
    logger = setup_logging(
        LoggingConfig(level=settings.log_level or "INFO", format=settings.log_format or "text"),
        settings.service_name
    )

    try:
        connector = ConnectorBootstrap(BootstrapOptions(pipeline=pipeline, logger=logger)).bootstrap(config_source)
    except ConnectorError as e:
        logger.error(
            f"Bootstrap failed at step '{e.step}': {e}",
            exc_info=e.cause is not None,
            extra={'step': e.step}
        )
        print(f"Bootstrap failed at step '{e.step}': {e}", file=sys.stderr)
        return 1

    # The configuration file may carry its own logging settings
    logging_config = connector.configuration.logging
    if settings.log_level or settings.log_format:
        logging_config = logging_config.model_copy(update={
            key: value for key, value in (("level", settings.log_level), ("format", settings.log_format)) if value
        })
    setup_logging(logging_config, settings.service_name)

    try:
        connector.run()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
    finally:
        connector.shutdown(timeout=10.0)
        logger.info("Connector shutdown complete")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Bootstrap and run a Kinesis connector")
    parser.add_argument("config", nargs="?", help="Configuration resource (default: $KINESIS_CONNECTOR_CONFIG_FILE)")
    parser.add_argument("--pipeline", default=DEFAULT_PIPELINE, help="Pipeline as module:ClassName")
    args = parser.parse_args(argv)

    settings = RuntimeSettings()
    try:
        pipeline = load_pipeline(args.pipeline)
    except (ImportError, AttributeError, ValueError) as e:
        print(f"Could not load pipeline '{args.pipeline}': {e}", file=sys.stderr)
        return 2

    return run_connector(args.config or settings.config_file, pipeline, settings)


if __name__ == "__main__":
    sys.exit(main())
