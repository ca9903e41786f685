"""Provisioning of the connector's Kinesis streams."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from .config.settings import ConnectorConfiguration, ProvisioningFlags


class StreamAdmin(Protocol):
    """Stream-provisioning capability; both calls must be idempotent."""

    def create_input_stream(self, config: ConnectorConfiguration) -> bool:
        ...

    def create_output_stream(self, config: ConnectorConfiguration) -> bool:
        ...


@dataclass
class ProvisioningResult:
    """Which streams were created and which already existed."""
    created: List[str] = field(default_factory=list)
    existing: List[str] = field(default_factory=list)


class ResourceProvisioner:
    """
    Creates the input and output streams when their flags ask for it.

    By default nothing is created; the user must set the matching create
    flags in the configuration. A stream that already exists counts as
    success. Any other failure raises ProvisioningError and stops here.
    """

    def __init__(self, admin: StreamAdmin, logger: Optional[logging.Logger] = None):
        self.admin = admin
        self.logger = logger or logging.getLogger(__name__)

    def provision(self, config: ConnectorConfiguration, flags: ProvisioningFlags) -> ProvisioningResult:
        result = ProvisioningResult()

        if flags.create_input_stream:
            self._record(result, config.kinesis_input_stream, self.admin.create_input_stream(config))

        if flags.create_output_stream:
            self._record(result, config.kinesis_output_stream, self.admin.create_output_stream(config))

        if not (flags.create_input_stream or flags.create_output_stream):
            self.logger.debug("No stream provisioning requested")
        else:
            self.logger.info(f"Provisioning complete: created={result.created} existing={result.existing}")
        return result

    @staticmethod
    def _record(result: ProvisioningResult, stream_name: str, created) -> None:
        # Only an explicit False means the stream already existed
        if created is False:
            result.existing.append(stream_name)
        else:
            result.created.append(stream_name)
