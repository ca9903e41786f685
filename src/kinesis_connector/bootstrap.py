"""
Connector bootstrap.

Loads the configuration, provisions the streams, optionally starts the stream
source and hands the pipeline to the pipeline factory. Steps run in order on
the caller's thread and each one depends on the previous one succeeding; the
stream source thread is the only concurrency introduced here.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from botocore.exceptions import BotoCoreError

from .clients.kinesis_writer import KinesisWriter
from .clients.stream_admin import KinesisStreamAdmin
from .config.aws_config import AWSClientManager
from .config.credentials import (
    CredentialsProvider,
    DefaultCredentialsProvider,
    provider_from_properties,
    resolve_credentials,
)
from .config.properties import PropertySource, load_properties
from .config.settings import ConnectorConfiguration, ProvisioningFlags
from .errors import ProvisioningError
from .feeder import FeederHandle, RecordWriter, start_feeder
from .pipeline import Pipeline, PipelineFactory
from .processor import KinesisProcessorFactory
from .provisioner import ProvisioningResult, ResourceProvisioner, StreamAdmin


def _kinesis_client(config: ConnectorConfiguration, stream_name: str):
    try:
        return AWSClientManager(config).new_kinesis_client()
    except (BotoCoreError, ValueError) as e:
        raise ProvisioningError("Kinesis client", stream_name, str(e), cause=e) from e


def _default_admin(config: ConnectorConfiguration) -> StreamAdmin:
    return KinesisStreamAdmin(_kinesis_client(config, config.kinesis_input_stream))


def _default_writer(config: ConnectorConfiguration) -> RecordWriter:
    # The stream source owns its client; nothing is shared with the pipeline
    client = _kinesis_client(config, config.kinesis_input_stream)
    return KinesisWriter(client, config.kinesis_input_stream)


@dataclass
class BootstrapOptions:
    """Everything a connector variant plugs into the generic bootstrap."""
    pipeline: Pipeline
    pipeline_factory: PipelineFactory = field(default_factory=KinesisProcessorFactory)
    credentials_provider: Optional[CredentialsProvider] = None
    admin_factory: Callable[[ConnectorConfiguration], StreamAdmin] = _default_admin
    writer_factory: Callable[[ConnectorConfiguration], RecordWriter] = _default_writer
    search_paths: Optional[Sequence[Path]] = None
    logger: Optional[logging.Logger] = None
    shutdown_timeout: float = 10.0


@dataclass
class RunningConnector:
    """A bootstrapped connector: its configuration, processor and stream source."""
    configuration: ConnectorConfiguration
    flags: ProvisioningFlags
    provisioning: ProvisioningResult
    processor: Any
    feeder: Optional[FeederHandle] = None

    def run(self) -> Any:
        """Run the processor on the calling thread."""
        return self.processor.run()

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Stop the stream source and the processor.

        Returns:
            True if the stream source (if any) finished within ``timeout``
        """
        if self.feeder is not None:
            self.feeder.stop()

        stop = getattr(self.processor, "stop", None)
        if stop is not None:
            stop()

        if self.feeder is None:
            return True
        return self.feeder.join(timeout)


class ConnectorBootstrap:
    """Runs the bootstrap sequence for one set of BootstrapOptions."""

    def __init__(self, options: BootstrapOptions):
        self.options = options
        self.logger = options.logger or logging.getLogger(__name__)

    def bootstrap(self, config_source: str) -> RunningConnector:
        """
        Bootstrap a connector from a configuration resource.

        Raises:
            ConfigLoadError: The resource is missing or unreadable
            ConfigParseError: A configuration value is malformed
            CredentialResolutionError: No usable credentials
            ProvisioningError: A stream could not be created
        """
        # 1. Load raw configuration
        source = load_properties(config_source, self.options.search_paths)
        self.logger.info(f"Loaded configuration from {source.origin}")

        # 2. Build the configuration snapshot every component shares
        flags = ProvisioningFlags.from_properties(source.properties)
        config = ConnectorConfiguration.from_properties(source.properties)
        provider = (
            self.options.credentials_provider
            or provider_from_properties(source.properties)
            or DefaultCredentialsProvider(region_name=config.region_name)
        )
        config = config.model_copy(update={"credentials": resolve_credentials(provider)})
        self.logger.info(
            f"Configured {config.app_name}: input={config.kinesis_input_stream} "
            f"output={config.kinesis_output_stream} region={config.region_name}"
        )

        # 3. Provision streams
        provisioner = ResourceProvisioner(self.options.admin_factory(config), logger=self.logger)
        provisioning = provisioner.provision(config, flags)

        # 4. Stream source
        feeder = None
        if flags.create_feeder:
            feeder = self._start_feeder(config, flags, source)

        # 5. Pipeline; a failure here must not leave the stream source running
        try:
            processor = self.options.pipeline_factory.build(self.options.pipeline, config)
        except BaseException:
            if feeder is not None:
                feeder.stop()
                if not feeder.join(self.options.shutdown_timeout):
                    self.logger.warning("Stream source did not stop after failed pipeline setup")
            raise
        self.logger.info(f"Pipeline initialized with {type(processor).__name__}")

        return RunningConnector(
            configuration=config,
            flags=flags,
            provisioning=provisioning,
            processor=processor,
            feeder=feeder,
        )

    def _start_feeder(
        self,
        config: ConnectorConfiguration,
        flags: ProvisioningFlags,
        source: PropertySource
    ) -> FeederHandle:
        input_path = resolve_input_file(flags.input_stream_file, source)
        return start_feeder(
            config,
            self.options.writer_factory(config),
            input_path,
            loop=flags.loop_feeder,
            logger=self.logger,
        )


def resolve_input_file(name: str, source: PropertySource) -> Path:
    """Input files resolve next to the configuration file first, then as given."""
    path = Path(name).expanduser()
    if path.is_absolute():
        return path

    beside_config = source.directory / path
    if beside_config.exists():
        return beside_config
    return path


def bootstrap(config_source: str, pipeline: Pipeline, **options) -> RunningConnector:
    """Shortcut for ``ConnectorBootstrap(BootstrapOptions(pipeline, ...)).bootstrap(config_source)``."""
    return ConnectorBootstrap(BootstrapOptions(pipeline=pipeline, **options)).bootstrap(config_source)
