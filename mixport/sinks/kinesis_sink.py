"""Amazon Kinesis sink.

Each record becomes one ``PutRecord`` request. Make sure the stream has
enough shards for the event volume: exports are noisy.
"""

from __future__ import annotations

import asyncio
import typing as typ

import boto3
import msgspec
from botocore.exceptions import BotoCoreError, ClientError

from mixport.logging import get_logger, log_warning
from mixport.mixpanel.models import EVENT_KEY, PRODUCT_KEY

if typ.TYPE_CHECKING:
    from mixport.config import KinesisConfig
    from mixport.mixpanel.models import EventRecord

    from .base import RecordReceiver

logger = get_logger(__name__)


class KinesisClient(typ.Protocol):
    """The part of the boto3 Kinesis client used by :class:`KinesisSink`."""

    def put_record(
        self, *, StreamName: str, Data: bytes, PartitionKey: str  # noqa: N803
    ) -> typ.Any:  # noqa: ANN401 - boto3 response dict
        """Write one record to ``StreamName``."""
        ...


def create_kinesis_client(config: KinesisConfig) -> KinesisClient:
    """Return a boto3 Kinesis client for ``config``.

    Explicit keys are optional; without them boto3 resolves credentials
    from its usual provider chain.
    """
    return boto3.client(
        "kinesis",
        region_name=config.region,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
    )


def partition_key(record: EventRecord) -> str:
    """Return the ``<product>-<event>`` partition key for ``record``."""
    return f"{record.get(PRODUCT_KEY)}-{record.get(EVENT_KEY)}"


class KinesisSink:
    """Push every record into a Kinesis stream.

    A failed put is logged and counted in :attr:`failed_puts`; the sink keeps
    consuming so one rejected record never stalls the export.
    """

    name = "kinesis"

    def __init__(self, client: KinesisClient, stream_name: str) -> None:
        """Bind the sink to a Kinesis client and stream."""
        self._client = client
        self._stream_name = stream_name
        self._encoder = msgspec.json.Encoder()
        self.records_sent = 0
        self.failed_puts = 0

    @property
    def stream_name(self) -> str:
        """Kinesis stream receiving the records."""
        return self._stream_name

    async def consume(self, records: RecordReceiver) -> None:
        """Put each record until the stream ends."""
        async for record in records:
            await self._put(record)

    async def _put(self, record: EventRecord) -> None:
        key = partition_key(record)
        try:
            await asyncio.to_thread(
                self._client.put_record,
                StreamName=self._stream_name,
                Data=self._encoder.encode(record),
                PartitionKey=key,
            )
        except (BotoCoreError, ClientError) as exc:
            self.failed_puts += 1
            log_warning(
                logger,
                "Kinesis PutRecord failed: stream=%s partition_key=%s error=%s",
                self._stream_name,
                key,
                exc,
            )
            return
        self.records_sent += 1
