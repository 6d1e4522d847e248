"""
Publishing DID messages to a consensus log topic and reading them back.

The log itself is an injected ConsensusLogClient. InMemoryConsensusLog is a
local implementation for tests and single-process use.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Dict, List, Optional, Protocol

from .envelope import MessageEnvelope, call_capability
from .errors import DidError
from .message import DidMessage
from .types import Decrypter, Encrypter, KeyExtractor, Signer, Verifier
from .validation import STRICT_BODY_POLICY, BodyRequirementPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishReceipt:
    topic_id: str
    sequence_number: int
    consensus_timestamp: datetime


@dataclass(frozen=True)
class LogEntry:
    contents: bytes
    consensus_timestamp: datetime
    sequence_number: int


class ConsensusLogClient(Protocol):
    async def publish(self, topic_id: str, data: bytes) -> PublishReceipt:
        ...

    def subscribe(self, topic_id: str) -> AsyncIterator[LogEntry]:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryConsensusLog:
    """Totally ordered, append-only topics held in memory."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._topics: Dict[str, List[LogEntry]] = {}
        self._changed = asyncio.Condition()
        self._closed = False

    async def publish(self, topic_id: str, data: bytes) -> PublishReceipt:
        topic_id = str(topic_id)
        async with self._changed:
            if self._closed:
                raise RuntimeError('Consensus log is closed')
            entries = self._topics.setdefault(topic_id, [])
            ts = self._clock()
            # Consensus timestamps are strictly increasing within a topic.
            if entries and ts <= entries[-1].consensus_timestamp:
                ts = entries[-1].consensus_timestamp + timedelta(microseconds=1)
            entry = LogEntry(contents=bytes(data), consensus_timestamp=ts, sequence_number=len(entries) + 1)
            entries.append(entry)
            self._changed.notify_all()
        return PublishReceipt(topic_id=topic_id, sequence_number=entry.sequence_number, consensus_timestamp=ts)

    async def subscribe(self, topic_id: str) -> AsyncIterator[LogEntry]:
        """Yield every entry of the topic from the start, then wait for new ones until closed."""
        topic_id = str(topic_id)
        index = 0
        while True:
            async with self._changed:
                await self._changed.wait_for(
                    lambda: self._closed or len(self._topics.get(topic_id, ())) > index
                )
                entries = self._topics.get(topic_id, [])
                if index >= len(entries):
                    return
                entry = entries[index]
            index += 1
            yield entry

    async def close(self) -> None:
        async with self._changed:
            self._closed = True
            self._changed.notify_all()

    def entries(self, topic_id: str) -> List[LogEntry]:
        return list(self._topics.get(str(topic_id), []))


async def publish_did_message(
    client: ConsensusLogClient,
    topic_id,
    message: DidMessage,
    signer: Signer,
    encrypter: Optional[Encrypter] = None,
) -> PublishReceipt:
    """Encrypt (optionally) and sign message, then publish the envelope to topic_id."""
    envelope = MessageEnvelope.create(message)
    if encrypter is not None:
        await envelope.encrypt(encrypter)
    await envelope.sign(signer)
    receipt = await client.publish(str(topic_id), envelope.to_json())
    logger.debug('Published %s for %s to %s (#%d)', message.operation.value, message.did, topic_id,
                 receipt.sequence_number)
    return receipt


class DidTopicListener:
    """
    Turns a topic subscription into a stream of accepted DID messages.

    An entry is accepted when its envelope parses, its signature verifies
    against the key found in the message, and the message is valid for this
    topic. Anything else is logged, passed to on_rejected if given, and skipped.
    """

    def __init__(
        self,
        client: ConsensusLogClient,
        topic_id,
        decrypter: Optional[Decrypter] = None,
        key_extractor: KeyExtractor = DidMessage.extract_did_root_key,
        policy: BodyRequirementPolicy = STRICT_BODY_POLICY,
        on_rejected: Optional[Callable] = None,
        verifier: Optional[Verifier] = None,
    ):
        self.client = client
        self.topic_id = str(topic_id)
        self.decrypter = decrypter
        self.key_extractor = key_extractor
        self.policy = policy
        self.on_rejected = on_rejected
        self.verifier = verifier

    async def messages(self) -> AsyncIterator[DidMessage]:
        async for entry in self.client.subscribe(self.topic_id):
            message = await self.process(entry)
            if message is not None:
                yield message

    async def process(self, entry: LogEntry) -> Optional[DidMessage]:
        try:
            envelope = MessageEnvelope.from_json(entry.contents, DidMessage, entry.consensus_timestamp)
            if envelope.is_encrypted and self.decrypter is None:
                return await self._reject(entry, 'encrypted message and no decrypter')
            if not await envelope.is_signature_valid(self.key_extractor, self.decrypter, self.verifier):
                return await self._reject(entry, 'invalid signature')
            message = await envelope.open(self.decrypter)
        except (DidError, ValueError) as e:
            return await self._reject(entry, f'{type(e).__name__}: {e}')

        if not message.is_valid(self.topic_id, self.policy):
            return await self._reject(entry, 'invalid message')
        return message

    async def _reject(self, entry: LogEntry, reason: str) -> None:
        logger.warning('Rejected entry #%d on topic %s: %s', entry.sequence_number, self.topic_id, reason)
        if self.on_rejected is not None:
            await call_capability(self.on_rejected, entry, reason)
        return None
