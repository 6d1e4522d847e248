import binascii
import json
from base64 import b64decode, b64encode
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Union

from .crypto import Ed25519PublicKey
from .did import parse_did
from .document import extract_root_key, parse_did_document
from .envelope import call_capability, canonical_json
from .errors import MalformedDocument, MalformedIdentifier, MalformedPayload
from .types import Decrypter, DidMethodOperation, Encrypter
from .validation import STRICT_BODY_POLICY, BodyRequirementPolicy, validate_did_message


def format_timestamp(ts: Optional[datetime]) -> Optional[str]:
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def parse_timestamp(value) -> Optional[datetime]:
    """RFC 3339 string or integer nanoseconds since the epoch."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise MalformedPayload('Invalid timestamp')
    if isinstance(value, int):
        seconds, nanos = divmod(value, 1_000_000_000)
        try:
            ts = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise MalformedPayload(f'Timestamp out of range: {value!r}') from e
        return ts.replace(microsecond=nanos // 1000)
    if isinstance(value, str):
        try:
            ts = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError as e:
            raise MalformedPayload(f'Invalid timestamp: {value!r}') from e
        return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)
    raise MalformedPayload(f'Invalid timestamp: {value!r}')


@dataclass
class DidMessage:
    """A DID lifecycle operation together with the DID document it publishes."""
    operation: DidMethodOperation
    did: Optional[str]
    did_document_base64: Optional[str]
    consensus_timestamp: Optional[datetime] = None

    def __post_init__(self):
        self.operation = DidMethodOperation(self.operation)

    @classmethod
    def from_did_document(
        cls,
        document: Union[str, bytes, Dict[str, Any]],
        operation: DidMethodOperation,
    ) -> 'DidMessage':
        doc = parse_did_document(document)
        try:
            did = parse_did(doc['id'])
        except MalformedIdentifier as e:
            raise MalformedDocument(f'DID document id is not a valid DID: {e}') from e
        body = canonical_json(doc).encode('utf-8')
        return cls(
            operation=DidMethodOperation(operation),
            did=did.to_did(),
            did_document_base64=b64encode(body).decode('ascii'),
        )

    @property
    def did_document(self) -> Optional[str]:
        """The DID document JSON, or None when the message carries no body."""
        if self.did_document_base64 is None:
            return None
        return b64decode(self.did_document_base64).decode('utf-8')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'operation': self.operation.value,
            'did': self.did,
            'didDocumentBase64': self.did_document_base64,
            'timestamp': format_timestamp(self.consensus_timestamp),
        }

    def to_json_bytes(self) -> bytes:
        return canonical_json(self.to_dict()).encode('utf-8')

    @classmethod
    def from_json_bytes(cls, data: bytes, consensus_timestamp: Optional[datetime] = None) -> 'DidMessage':
        try:
            obj = json.loads(data)
        except (ValueError, TypeError) as e:
            raise MalformedPayload(f'DID message is not valid JSON: {e}') from e
        if not isinstance(obj, dict):
            raise MalformedPayload('DID message must be a JSON object')

        try:
            operation = DidMethodOperation(obj.get('operation'))
        except ValueError as e:
            raise MalformedPayload(f'Unknown DID operation: {obj.get("operation")!r}') from e
        did = obj.get('did')
        body = obj.get('didDocumentBase64')
        for name, value in (('did', did), ('didDocumentBase64', body)):
            if value is not None and not isinstance(value, str):
                raise MalformedPayload(f'"{name}" must be a string or null')
        if body is not None:
            try:
                b64decode(body, validate=True)
            except (binascii.Error, ValueError) as e:
                raise MalformedPayload(f'"didDocumentBase64" is not valid base64: {e}') from e

        timestamp = parse_timestamp(obj.get('timestamp'))
        return cls(
            operation=operation,
            did=did,
            did_document_base64=body,
            consensus_timestamp=consensus_timestamp if consensus_timestamp is not None else timestamp,
        )

    def is_valid(self, expected_topic=None, policy: BodyRequirementPolicy = STRICT_BODY_POLICY) -> bool:
        return validate_did_message(self, expected_topic, policy)

    def extract_did_root_key(self) -> Ed25519PublicKey:
        if self.did_document_base64 is None:
            raise MalformedDocument('Message carries no DID document')
        try:
            raw = b64decode(self.did_document_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedDocument(f'DID document is not valid base64: {e}') from e
        return extract_root_key(raw)

    @staticmethod
    def get_encrypter(raw_encrypt: Callable[[str], Any]) -> Encrypter:
        """Adapt a text cipher (plaintext str -> ciphertext str) to an envelope encrypter."""
        async def encrypter(plaintext: bytes) -> bytes:
            ciphertext = await call_capability(raw_encrypt, plaintext.decode('utf-8'))
            return ciphertext.encode('utf-8')
        return encrypter

    @staticmethod
    def get_decrypter(raw_decrypt: Callable[[str, Optional[datetime]], Any]) -> Decrypter:
        """
        Adapt a text cipher (ciphertext str, consensus timestamp -> plaintext str)
        to an envelope decrypter.
        """
        async def decrypter(ciphertext: bytes, timestamp: Optional[datetime]) -> bytes:
            try:
                text = ciphertext.decode('utf-8')
            except UnicodeDecodeError as e:
                raise MalformedPayload('Ciphertext is not text') from e
            plaintext = await call_capability(raw_decrypt, text, timestamp)
            return plaintext.encode('utf-8')
        return decrypter
