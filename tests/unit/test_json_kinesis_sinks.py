"""Unit tests for the JSON and Kinesis sinks."""

from __future__ import annotations

import io
import typing as typ

import msgspec
from botocore.exceptions import ClientError

from mixport.config import KinesisConfig
from mixport.sinks.json_sink import JSONSink
from mixport.sinks.kinesis_sink import KinesisSink, create_kinesis_client, partition_key
from tests.helpers import run_async
from tests.helpers.fakes import make_record, records_from
from tests.helpers.femtologging_capture import capture_femto_logs


class _StubKinesis:
    """Records ``put_record`` calls, failing for chosen partition keys."""

    def __init__(self, *, reject: str | None = None) -> None:
        self.puts: list[dict[str, typ.Any]] = []
        self.reject = reject

    def put_record(self, **kwargs: typ.Any) -> dict[str, str]:  # noqa: ANN401
        if kwargs["PartitionKey"] == self.reject:
            error = {
                "Code": "ProvisionedThroughputExceededException",
                "Message": "slow down",
            }
            raise ClientError({"Error": error}, "PutRecord")
        self.puts.append(kwargs)
        return {"ShardId": "shardId-000000000000", "SequenceNumber": "1"}


class TestJSONSink:
    """Tests for the line-delimited JSON sink."""

    def test_writes_one_object_per_line(self) -> None:
        """Each record is a compact JSON line, keys in record order."""
        stream = io.StringIO()
        records = [
            make_record("signup", event_id="e-1", plan="pro", seats=3),
            make_record("login", event_id="e-2", ratio=0.5),
        ]
        sink = JSONSink(stream)

        run_async(lambda: sink.consume(records_from(records)))

        lines = stream.getvalue().splitlines()
        assert len(lines) == 2
        assert lines[0] == (
            '{"plan":"pro","seats":3,"event":"signup","product":"acme",'
            '"$mixport_id":"e-1"}'
        )
        assert msgspec.json.decode(lines[1]) == records[1]
        assert sink.records_written == 2

    def test_empty_stream_writes_nothing(self) -> None:
        """No records means an empty file."""
        stream = io.StringIO()

        run_async(lambda: JSONSink(stream).consume(records_from([])))

        assert stream.getvalue() == ""


class TestKinesisSink:
    """Tests for the Kinesis sink."""

    def test_puts_every_record(self) -> None:
        """Each record is one PutRecord with a product-event partition key."""
        client = _StubKinesis()
        records = [make_record("signup", event_id="e-1"), make_record("login")]
        sink = KinesisSink(client, "events")

        run_async(lambda: sink.consume(records_from(records)))

        assert [put["StreamName"] for put in client.puts] == ["events", "events"]
        assert [put["PartitionKey"] for put in client.puts] == [
            "acme-signup",
            "acme-login",
        ]
        assert msgspec.json.decode(client.puts[0]["Data"]) == records[0]
        assert sink.records_sent == 2
        assert sink.failed_puts == 0

    def test_failed_put_is_logged_and_skipped(self) -> None:
        """A rejected record is counted and the stream continues."""
        client = _StubKinesis(reject="acme-purchase")
        records = [
            make_record("signup"),
            make_record("purchase"),
            make_record("login"),
        ]
        sink = KinesisSink(client, "events")

        with capture_femto_logs("mixport.sinks.kinesis_sink") as capture:
            run_async(lambda: sink.consume(records_from(records)))

        capture.wait_for_count(1)
        assert sink.failed_puts == 1
        assert sink.records_sent == 2
        assert [put["PartitionKey"] for put in client.puts] == [
            "acme-signup",
            "acme-login",
        ]
        assert capture.records[0].level == "WARN"
        assert "partition_key=acme-purchase" in capture.records[0].message


def test_partition_key() -> None:
    """Partition keys combine product and event."""
    assert partition_key(make_record("signup", product="globex")) == "globex-signup"


def test_create_kinesis_client_uses_region() -> None:
    """Clients are created for the configured region."""
    client = create_kinesis_client(
        KinesisConfig(
            enabled=True,
            stream="events",
            region="eu-west-1",
            access_key_id="AKIDEXAMPLE",
            secret_access_key="secret",
        )
    )

    assert client.meta.region_name == "eu-west-1"
