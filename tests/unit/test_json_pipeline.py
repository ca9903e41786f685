"""Tests for the sample JSON pipeline."""

import json
from unittest.mock import Mock

from kinesis_connector.errors import PublishError
from kinesis_connector.samples.json_pipeline import JsonPipeline, KinesisMessageModel

USER = (
    b'{"userid":1,"username":"SAMPLE","firstname":"Sample","lastname":"User","city":"Kent",'
    b'"state":"WA","email":"sample@example.com","phone":"(555) 555-0100","likesports":true}'
)


def test_transform_valid_record():
    item = JsonPipeline(writer=Mock()).transform(USER)

    assert isinstance(item, KinesisMessageModel)
    assert item.userid == 1
    assert item.likesports is True
    assert item.likejazz is False


def test_transform_malformed_record():
    pipeline = JsonPipeline(writer=Mock())

    assert pipeline.transform(b"not json") is None
    assert pipeline.transform(b'{"userid": "abc"}') is None


def test_emit_publishes_batch():
    writer = Mock()
    pipeline = JsonPipeline(writer=writer)
    item = pipeline.transform(USER)

    failed = pipeline.emit([item])

    assert failed == []
    (record,) = writer.publish_batch.call_args.args[0]
    assert record.partition_key == "1"
    assert json.loads(record.data)["username"] == "SAMPLE"


def test_emit_reports_failed_items():
    writer = Mock()
    writer.publish_batch.side_effect = PublishError("jsonOutputStream", "throttled")
    pipeline = JsonPipeline(writer=writer)
    item = pipeline.transform(USER)

    assert pipeline.emit([item]) == [item]


def test_setup_keeps_injected_writer(test_config):
    writer = Mock()
    pipeline = JsonPipeline(writer=writer)

    pipeline.setup(test_config)

    assert pipeline.writer is writer
