"""
Kinesis Connector - bootstrap for stream-ingestion connectors.

Provisions the Kinesis input and output streams, optionally replays a file
onto the input stream, and wires a caller supplied pipeline to consume it.
"""

from .bootstrap import BootstrapOptions, ConnectorBootstrap, RunningConnector, bootstrap
from .config.properties import PropertyStore, load_properties
from .config.settings import ConnectorConfiguration, ProvisioningFlags
from .errors import (
    ConfigLoadError,
    ConfigParseError,
    ConnectorError,
    CredentialResolutionError,
    FeedReadError,
    ProvisioningError,
    PublishError,
)
from .feeder import FeederHandle, RecordFeeder
from .pipeline import Pipeline, PipelineFactory
from .provisioner import ResourceProvisioner

__version__ = "1.0.0"

__all__ = [
    "BootstrapOptions",
    "ConnectorBootstrap",
    "RunningConnector",
    "bootstrap",
    "PropertyStore",
    "load_properties",
    "ConnectorConfiguration",
    "ProvisioningFlags",
    "ConnectorError",
    "ConfigLoadError",
    "ConfigParseError",
    "CredentialResolutionError",
    "ProvisioningError",
    "FeedReadError",
    "PublishError",
    "FeederHandle",
    "RecordFeeder",
    "Pipeline",
    "PipelineFactory",
    "ResourceProvisioner",
]
