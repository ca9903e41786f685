"""Tests for the stream source feeder."""

import threading

import pytest

from kinesis_connector.config.properties import PropertyStore
from kinesis_connector.config.settings import ConnectorConfiguration
from kinesis_connector.errors import PublishError
from kinesis_connector.feeder import FeederStatus, FileRecordSource, RecordFeeder


def published(writer):
    return [call.args[0].data for call in writer.publish.call_args_list]


def batch_sizes(writer):
    return [len(call.args[0]) for call in writer.publish_batch.call_args_list]


class TestSingleRecordMode:

    def test_one_publish_per_record(self, mock_writer, record_source_factory):
        source = record_source_factory([b"r1", b"r2", b"r3"])

        result = RecordFeeder(mock_writer, source).run()

        assert published(mock_writer) == [b"r1", b"r2", b"r3"]
        mock_writer.publish_batch.assert_not_called()
        assert result.state.status == FeederStatus.EXHAUSTED
        assert result.state.records_published == 3
        assert result.stopped is False

    def test_empty_source(self, mock_writer, record_source_factory):
        result = RecordFeeder(mock_writer, record_source_factory([])).run()

        mock_writer.publish.assert_not_called()
        assert result.state.records_read == 0

    def test_partition_key_from_data(self, mock_writer, record_source_factory):
        feeder = RecordFeeder(mock_writer, record_source_factory([b"abc"]), partition_key=lambda d: d.decode())

        feeder.run()

        assert mock_writer.publish.call_args.args[0].partition_key == "abc"

    def test_publish_failure_continues(self, mock_writer, record_source_factory):
        mock_writer.publish.side_effect = [None, PublishError("s", "throttled"), None]

        result = RecordFeeder(mock_writer, record_source_factory([b"r1", b"r2", b"r3"])).run()

        assert mock_writer.publish.call_count == 3
        assert result.state.publish_failures == 1
        assert result.state.records_published == 2


class TestBatchedMode:

    def test_record_limit(self, mock_writer, record_source_factory):
        source = record_source_factory([f"r{i}".encode() for i in range(7)])

        RecordFeeder(mock_writer, source, batched=True, max_batch_records=3).run()

        assert batch_sizes(mock_writer) == [3, 3, 1]
        mock_writer.publish.assert_not_called()

    def test_byte_limit(self, mock_writer, record_source_factory):
        source = record_source_factory([b"aaaa", b"bbbb", b"c" * 16, b"dd"])
        feeder = RecordFeeder(
            mock_writer, source, batched=True, max_batch_records=10, max_batch_bytes=10, partition_key=lambda d: "k"
        )

        feeder.run()

        # the 17 byte record exceeds the cap and goes out on its own
        assert batch_sizes(mock_writer) == [2, 1, 1]

    def test_partition_keys_count_toward_byte_limit(self, mock_writer, record_source_factory):
        # 4 data bytes fit twice under the cap, but not with a 2 byte key each
        source = record_source_factory([b"aaaa", b"bbbb", b"cccc"])
        feeder = RecordFeeder(
            mock_writer, source, batched=True, max_batch_records=10, max_batch_bytes=10, partition_key=lambda d: "pk"
        )

        feeder.run()

        assert batch_sizes(mock_writer) == [1, 1, 1]
        for call in mock_writer.publish_batch.call_args_list:
            assert sum(record.size for record in call.args[0]) <= 10

    def test_default_byte_limit_matches_put_records_request_limit(self, mock_writer, record_source_factory):
        # 500 records whose data alone is just under 5 MiB
        records = [bytes([65 + i % 26]) * 10485 for i in range(500)]

        RecordFeeder(mock_writer, record_source_factory(records), batched=True).run()

        sizes = batch_sizes(mock_writer)
        assert sum(sizes) == 500
        assert len(sizes) == 2
        for call in mock_writer.publish_batch.call_args_list:
            assert sum(record.size for record in call.args[0]) <= 5 * 1024 * 1024

    def test_records_keep_source_order(self, mock_writer, record_source_factory):
        records = [f"r{i}".encode() for i in range(5)]

        RecordFeeder(mock_writer, record_source_factory(records), batched=True, max_batch_records=2).run()

        sent = [r.data for call in mock_writer.publish_batch.call_args_list for r in call.args[0]]
        assert sent == records

    def test_from_configuration_selects_batched_mode(self, mock_writer, tmp_path):
        config = ConnectorConfiguration.from_properties(PropertyStore({
            "batchRecordsInPutRequest": "true",
            "streamSourceBatchRecordLimit": "2",
        }))

        feeder = RecordFeeder.from_configuration(config, mock_writer, tmp_path / "users.txt", loop=False)

        assert feeder.batched is True
        assert feeder.max_batch_records == 2
        assert isinstance(feeder.source, FileRecordSource)


class TestLooping:

    def test_loop_until_stopped(self, mock_writer, record_source_factory):
        source = record_source_factory([b"r1", b"r2"])
        feeder = RecordFeeder(mock_writer, source, loop=True)

        def stop_on_fifth(record):
            if mock_writer.publish.call_count == 5:
                feeder.stop()

        mock_writer.publish.side_effect = stop_on_fifth

        result = feeder.run()

        assert published(mock_writer) == [b"r1", b"r2", b"r1", b"r2", b"r1"]
        assert source.opens == source.closes == 3
        assert result.stopped is True
        assert result.state.status == FeederStatus.STOPPED
        assert result.state.loop_count == 2

    def test_empty_source_does_not_spin(self, mock_writer, record_source_factory):
        source = record_source_factory([])

        result = RecordFeeder(mock_writer, source, loop=True).run()

        assert source.opens == 1
        assert result.state.status == FeederStatus.EXHAUSTED


class TestFileRecordSource:

    def test_reads_lines(self, mock_writer, tmp_path):
        path = tmp_path / "records.txt"
        path.write_bytes(b"one\r\n\ntwo\n  \nthree")

        RecordFeeder(mock_writer, FileRecordSource(path)).run()

        assert published(mock_writer) == [b"one", b"two", b"three"]

    def test_missing_file(self, mock_writer, tmp_path):
        result = RecordFeeder(mock_writer, FileRecordSource(tmp_path / "missing.txt"), loop=True).run()

        mock_writer.publish.assert_not_called()
        assert result.state.read_failures == 1
        assert result.state.status == FeederStatus.EXHAUSTED


class TestFeederHandle:

    def test_start_returns_before_completion(self, mock_writer, record_source_factory):
        release = threading.Event()
        mock_writer.publish.side_effect = lambda record: release.wait(5)
        feeder = RecordFeeder(mock_writer, record_source_factory([b"r1"]))

        handle = feeder.start()

        assert handle.done() is False
        release.set()
        assert handle.join(5) is True
        assert handle.result().state.records_published == 1

    def test_stop_infinite_loop(self, mock_writer, record_source_factory):
        handle = RecordFeeder(mock_writer, record_source_factory([b"r1", b"r2"]), loop=True).start()

        handle.stop()

        assert handle.join(5) is True
        result = handle.result()
        assert result.stopped is True
        assert result.state.status == FeederStatus.STOPPED

    def test_start_twice(self, mock_writer, record_source_factory):
        feeder = RecordFeeder(mock_writer, record_source_factory([]))
        handle = feeder.start()

        with pytest.raises(RuntimeError):
            feeder.start()
        handle.join(5)

    def test_unexpected_error_reported_through_result(self, mock_writer, record_source_factory):
        mock_writer.publish.side_effect = ValueError("writer bug")

        handle = RecordFeeder(mock_writer, record_source_factory([b"r1"])).start()

        assert handle.join(5) is True
        with pytest.raises(ValueError, match="writer bug"):
            handle.result()
        assert handle.state().status == FeederStatus.STOPPED

    def test_result_timeout(self, mock_writer, record_source_factory):
        release = threading.Event()
        mock_writer.publish.side_effect = lambda record: release.wait(5)
        handle = RecordFeeder(mock_writer, record_source_factory([b"r1"])).start()

        with pytest.raises(TimeoutError):
            handle.result(timeout=0.01)
        release.set()
        handle.join(5)

    def test_thread_name(self, mock_writer, record_source_factory):
        names = []
        mock_writer.publish.side_effect = lambda record: names.append(threading.current_thread().name)

        RecordFeeder(mock_writer, record_source_factory([b"r1"], name="users.txt")).start().join(5)

        assert names == ["stream-source-users.txt"]
