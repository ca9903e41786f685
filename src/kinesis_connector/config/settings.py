"""Typed, immutable connector configuration."""

from dataclasses import dataclass
from typing import Optional

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ConfigParseError
from .credentials import AWSCredentials
from .properties import PropertyStore

# Create AWS resource keys
CREATE_KINESIS_INPUT_STREAM = "createKinesisInputStream"
CREATE_KINESIS_OUTPUT_STREAM = "createKinesisOutputStream"
DEFAULT_CREATE_RESOURCES = False

# Stream source keys
CREATE_STREAM_SOURCE = "createStreamSource"
LOOP_OVER_STREAM_SOURCE = "loopOverStreamSource"
DEFAULT_CREATE_STREAM_SOURCE = False
DEFAULT_LOOP_OVER_STREAM_SOURCE = False
INPUT_STREAM_FILE = "inputStreamFile"

INITIAL_POSITIONS = ("LATEST", "TRIM_HORIZON")

MAX_RECORDS_PER_PUT = 500

_ENDPOINT_URL = TypeAdapter(AnyHttpUrl)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")
    output: str = Field(default="stdout", description="Log output destination")


class ConnectorConfiguration(BaseModel):
    """
    Resolved configuration shared by every connector component.

    Built once per bootstrap and never mutated. Pipeline specific keys remain
    reachable through ``properties``.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    app_name: str = "KinesisConnector"
    region_name: str = "us-east-1"
    kinesis_endpoint: Optional[str] = None

    kinesis_input_stream: str = "kinesisInputStream"
    kinesis_output_stream: str = "kinesisOutputStream"
    kinesis_input_stream_shard_count: int = 1
    kinesis_output_stream_shard_count: int = 1

    # Stream source publishing
    batch_records_in_put_request: bool = False
    stream_source_batch_record_limit: int = 500
    stream_source_batch_byte_limit: int = 5 * 1024 * 1024

    # Pipeline buffer and emitter
    buffer_record_count_limit: int = 1000
    buffer_byte_size_limit: int = 1024 * 1024
    buffer_milliseconds_limit: int = 60000
    retry_limit: int = 3
    backoff_interval: int = 1000

    # Stream polling
    idle_time_between_reads: int = 1000
    max_records: int = 10000
    initial_position_in_stream: str = "LATEST"

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    credentials: Optional[AWSCredentials] = None
    properties: PropertyStore = Field(default_factory=PropertyStore, repr=False)

    @classmethod
    def from_properties(
        cls,
        properties: PropertyStore,
        credentials: Optional[AWSCredentials] = None
    ) -> "ConnectorConfiguration":
        """
        Build the configuration from raw properties.

        Raises:
            ConfigParseError: If any recognized key holds a malformed value
        """
        defaults = cls()
        p = properties

        initial_position = p.get_string("initialPositionInStream", defaults.initial_position_in_stream).strip().upper()
        if initial_position not in INITIAL_POSITIONS:
            raise ConfigParseError("initialPositionInStream", initial_position, " or ".join(INITIAL_POSITIONS))

        config = cls(
            app_name=p.get_string("appName", defaults.app_name),
            region_name=p.get_string("regionName", defaults.region_name),
            kinesis_endpoint=_endpoint_url(p),
            kinesis_input_stream=p.get_string("kinesisInputStream", defaults.kinesis_input_stream),
            kinesis_output_stream=p.get_string("kinesisOutputStream", defaults.kinesis_output_stream),
            kinesis_input_stream_shard_count=p.get_int(
                "kinesisInputStreamShardCount", defaults.kinesis_input_stream_shard_count),
            kinesis_output_stream_shard_count=p.get_int(
                "kinesisOutputStreamShardCount", defaults.kinesis_output_stream_shard_count),
            batch_records_in_put_request=p.get_bool(
                "batchRecordsInPutRequest", defaults.batch_records_in_put_request),
            stream_source_batch_record_limit=p.get_int(
                "streamSourceBatchRecordLimit", defaults.stream_source_batch_record_limit),
            stream_source_batch_byte_limit=p.get_long(
                "streamSourceBatchByteLimit", defaults.stream_source_batch_byte_limit),
            buffer_record_count_limit=p.get_long("bufferRecordCountLimit", defaults.buffer_record_count_limit),
            buffer_byte_size_limit=p.get_long("bufferByteSizeLimit", defaults.buffer_byte_size_limit),
            buffer_milliseconds_limit=p.get_long("bufferMillisecondsLimit", defaults.buffer_milliseconds_limit),
            retry_limit=p.get_int("retryLimit", defaults.retry_limit),
            backoff_interval=p.get_long("backoffInterval", defaults.backoff_interval),
            idle_time_between_reads=p.get_long("idleTimeBetweenReads", defaults.idle_time_between_reads),
            max_records=p.get_int("maxRecords", defaults.max_records),
            initial_position_in_stream=initial_position,
            logging=LoggingConfig(
                level=p.get_string("logLevel", defaults.logging.level),
                format=p.get_string("logFormat", defaults.logging.format),
                output=p.get_string("logOutput", defaults.logging.output),
            ),
            credentials=credentials,
            properties=properties,
        )

        for key, value in (
            ("kinesisInputStreamShardCount", config.kinesis_input_stream_shard_count),
            ("kinesisOutputStreamShardCount", config.kinesis_output_stream_shard_count),
            ("streamSourceBatchRecordLimit", config.stream_source_batch_record_limit),
            ("streamSourceBatchByteLimit", config.stream_source_batch_byte_limit),
            ("maxRecords", config.max_records),
        ):
            if value < 1:
                raise ConfigParseError(key, str(value), "a positive integer")

        if config.stream_source_batch_record_limit > MAX_RECORDS_PER_PUT:
            raise ConfigParseError(
                "streamSourceBatchRecordLimit",
                str(config.stream_source_batch_record_limit),
                f"at most {MAX_RECORDS_PER_PUT} (the PutRecords limit)"
            )

        return config


@dataclass(frozen=True)
class ProvisioningFlags:
    """What the bootstrap should create or start. Everything defaults to off."""
    create_input_stream: bool = DEFAULT_CREATE_RESOURCES
    create_output_stream: bool = DEFAULT_CREATE_RESOURCES
    create_feeder: bool = DEFAULT_CREATE_STREAM_SOURCE
    loop_feeder: bool = DEFAULT_LOOP_OVER_STREAM_SOURCE
    input_stream_file: Optional[str] = None

    @classmethod
    def from_properties(cls, properties: PropertyStore) -> "ProvisioningFlags":
        create_feeder = properties.get_bool(CREATE_STREAM_SOURCE, DEFAULT_CREATE_STREAM_SOURCE)
        input_file = properties.get_string(INPUT_STREAM_FILE)
        if create_feeder and not input_file:
            raise ConfigParseError(INPUT_STREAM_FILE, None, f"required when {CREATE_STREAM_SOURCE}=true")

        return cls(
            create_input_stream=properties.get_bool(CREATE_KINESIS_INPUT_STREAM, DEFAULT_CREATE_RESOURCES),
            create_output_stream=properties.get_bool(CREATE_KINESIS_OUTPUT_STREAM, DEFAULT_CREATE_RESOURCES),
            create_feeder=create_feeder,
            loop_feeder=properties.get_bool(LOOP_OVER_STREAM_SOURCE, DEFAULT_LOOP_OVER_STREAM_SOURCE),
            input_stream_file=input_file,
        )


class RuntimeSettings(BaseSettings):
    """Process level settings read from the environment (KINESIS_CONNECTOR_*)."""
    model_config = SettingsConfigDict(
        env_prefix="KINESIS_CONNECTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    config_file: str = Field(default="json.properties", description="Configuration resource name")
    log_level: Optional[str] = Field(default=None, description="Overrides logLevel")
    log_format: Optional[str] = Field(default=None, description="Overrides logFormat")
    service_name: str = Field(default="kinesis-connector", description="Service name for log context")


def _endpoint_url(properties: PropertyStore) -> Optional[str]:
    """The kinesisEndpoint override, which must be an http(s) URL when set."""
    endpoint = (properties.get_string("kinesisEndpoint") or "").strip()
    if not endpoint:
        return None
    try:
        _ENDPOINT_URL.validate_python(endpoint)
    except ValidationError:
        raise ConfigParseError("kinesisEndpoint", endpoint, "an http(s) URL") from None
    return endpoint
