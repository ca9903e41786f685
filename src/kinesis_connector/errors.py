"""Error taxonomy for the connector bootstrap.

Fatal errors (configuration, credentials, provisioning) surface from
``bootstrap()``. Feeder errors (read and publish) stay inside the feeder thread.
"""

from typing import Optional


class ConnectorError(Exception):
    """Base class for all connector errors."""

    step = "connector"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ConfigLoadError(ConnectorError):
    """Configuration resource could not be located or read."""

    step = "load configuration"

    NOT_FOUND = "not_found"
    UNREADABLE = "unreadable"

    def __init__(self, resource: str, reason: str, detail: str = "", cause: Optional[BaseException] = None):
        if reason == self.NOT_FOUND:
            message = f"Could not find configuration resource '{resource}'"
        else:
            message = f"Could not read configuration resource '{resource}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, cause)
        self.resource = resource
        self.reason = reason


class ConfigParseError(ConnectorError):
    """A configuration value could not be parsed as its expected type."""

    step = "build configuration"

    def __init__(self, key: str, value: Optional[str], expected: str):
        if value is None:
            message = f"Configuration key '{key}' is invalid: {expected}"
        else:
            message = f"Configuration key '{key}' has value '{value}', expected {expected}"
        super().__init__(message)
        self.key = key
        self.value = value
        self.expected = expected


class CredentialResolutionError(ConnectorError):
    """No usable AWS credentials could be resolved."""

    step = "resolve credentials"


class ProvisioningError(ConnectorError):
    """Creating a stream failed for a reason other than it already existing."""

    step = "provision resources"

    def __init__(self, resource: str, stream_name: str, detail: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to provision {resource} '{stream_name}': {detail}", cause)
        self.resource = resource
        self.stream_name = stream_name


class FeedReadError(ConnectorError):
    """The feeder could not read its input source."""

    step = "stream source"

    def __init__(self, path: str, detail: str, cause: Optional[BaseException] = None):
        super().__init__(f"Could not read stream source '{path}': {detail}", cause)
        self.path = path


class PublishError(ConnectorError):
    """Writing a record or a batch to a stream failed."""

    step = "publish"

    def __init__(self, stream_name: str, detail: str, failed_count: int = 1, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to publish {failed_count} record(s) to '{stream_name}': {detail}", cause)
        self.stream_name = stream_name
        self.failed_count = failed_count
