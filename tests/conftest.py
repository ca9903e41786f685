"""Pytest configuration and shared fixtures."""

from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, List
from unittest.mock import Mock

import pytest

from kinesis_connector.config.credentials import StaticCredentialsProvider
from kinesis_connector.config.properties import PropertyStore
from kinesis_connector.config.settings import ConnectorConfiguration


class ListRecordSource:
    """In-memory RecordSource that counts how often it is opened and closed."""

    def __init__(self, records: List[bytes], name: str = "memory"):
        self.records = list(records)
        self.name = name
        self.opens = 0
        self.closes = 0

    @contextmanager
    def open(self):
        self.opens += 1
        try:
            yield iter(self.records)
        finally:
            self.closes += 1


@pytest.fixture
def record_source_factory() -> Callable[..., ListRecordSource]:
    """Factory for in-memory record sources."""
    return ListRecordSource


@pytest.fixture
def mock_writer():
    """Mock stream-write client."""
    writer = Mock()
    writer.publish = Mock(return_value={'SequenceNumber': '1', 'ShardId': 'shardId-000000000000'})
    writer.publish_batch = Mock(return_value={'FailedRecordCount': 0, 'Records': []})
    return writer


@pytest.fixture
def mock_admin():
    """Mock stream-provisioning client; both streams are created."""
    admin = Mock()
    admin.create_input_stream = Mock(return_value=True)
    admin.create_output_stream = Mock(return_value=True)
    return admin


@pytest.fixture
def static_credentials() -> StaticCredentialsProvider:
    return StaticCredentialsProvider("AKIDTEST", "secret-test")


@pytest.fixture
def test_config() -> ConnectorConfiguration:
    """Configuration with every recognized key at its default."""
    return ConnectorConfiguration.from_properties(PropertyStore({}))


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    """Write a .properties file into tmp_path and return its path."""
    def _write(values: Dict[str, str], name: str = "connector.properties") -> Path:
        path = tmp_path / name
        path.write_text("\n".join(f"{key}={value}" for key, value in values.items()) + "\n")
        return path
    return _write


@pytest.fixture
def users_file(tmp_path: Path) -> Callable[[int], Path]:
    """Write a newline delimited JSON file with ``count`` user records."""
    def _write(count: int, name: str = "users.txt") -> Path:
        path = tmp_path / name
        lines = [
            '{"userid":%d,"username":"USER%d","firstname":"First%d","lastname":"Last%d",'
            '"city":"Kent","state":"WA","email":"user%d@example.com","phone":"(555) 000-%04d",'
            '"likesports":true}' % (i, i, i, i, i, i)
            for i in range(1, count + 1)
        ]
        path.write_text("\n".join(lines) + "\n")
        return path
    return _write


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake AWS credentials so boto3 never reaches a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
