import hashlib
import re
from dataclasses import dataclass
from typing import Optional, Union

import base58

from .crypto import Ed25519PublicKey
from .errors import InvalidArgument, MalformedIdentifier

DID_PREFIX = 'did'
DID_METHOD = 'hedera'
FINGERPRINT_LENGTH = 32

_NETWORK_RE = re.compile(r'^[a-z0-9]+$')
_ENTITY_ID_RE = re.compile(r'^\d+\.\d+\.\d+$')
_DID_RE = re.compile(
    r'^did:(?P<method>[a-z0-9]+):(?P<network>[a-z0-9]+):(?P<id>[1-9A-HJ-NP-Za-km-z]+)(?P<params>(;[^;]*)*)$'
)

PARAM_ADDRESS_BOOK = 'fid'
PARAM_TOPIC = 'topic'


def public_key_fingerprint(public_key: Union[bytes, Ed25519PublicKey]) -> bytes:
    """SHA-256 over the raw public key bytes."""
    raw = bytes(public_key)
    if len(raw) != 32:
        raise InvalidArgument('Ed25519 public key must be 32 bytes')
    return hashlib.sha256(raw).digest()


def _entity_id(value, name: str) -> str:
    text = str(value)
    if not _ENTITY_ID_RE.match(text):
        raise InvalidArgument(f'{name} must look like shard.realm.num, got {text!r}')
    return text


@dataclass(frozen=True)
class Did:
    network: str
    public_key_fingerprint: bytes
    address_book: Optional[str] = None
    topic_id: Optional[str] = None

    @property
    def id_string(self) -> str:
        return base58.b58encode_check(self.public_key_fingerprint).decode('ascii')

    def to_did(self) -> str:
        did = f'{DID_PREFIX}:{DID_METHOD}:{self.network}:{self.id_string}'
        if self.address_book is not None:
            did += f';{PARAM_ADDRESS_BOOK}={self.address_book}'
        if self.topic_id is not None:
            did += f';{PARAM_TOPIC}={self.topic_id}'
        return did

    @classmethod
    def parse(cls, did: str) -> 'Did':
        return parse_did(did)

    def matches_public_key(self, public_key: Union[bytes, Ed25519PublicKey]) -> bool:
        return public_key_fingerprint(public_key) == self.public_key_fingerprint

    def __str__(self):
        return self.to_did()

    def __eq__(self, other):
        if not isinstance(other, Did):
            return NotImplemented
        return self.to_did() == other.to_did()

    def __hash__(self):
        return hash(self.to_did())


def derive_did(network: str, public_key, address_book, topic_id=None) -> Did:
    """
    Derive the DID controlled by public_key on the given network.

    address_book and topic_id are entity ids (e.g. "0.0.1") or objects whose
    str() is one.
    """
    if not isinstance(network, str) or not _NETWORK_RE.match(network):
        raise InvalidArgument(f'Invalid network name: {network!r}')
    if address_book is None:
        raise InvalidArgument('Address book locator is required')
    try:
        fingerprint = public_key_fingerprint(public_key)
    except TypeError as e:
        raise InvalidArgument(f'Unsupported public key: {e}') from e
    return Did(
        network=network,
        public_key_fingerprint=fingerprint,
        address_book=_entity_id(address_book, 'address book'),
        topic_id=_entity_id(topic_id, 'topic') if topic_id is not None else None,
    )


def parse_did(did: str) -> Did:
    if not isinstance(did, str):
        raise MalformedIdentifier(f'DID must be a string, got {type(did).__name__}')
    m = _DID_RE.match(did)
    if m is None:
        raise MalformedIdentifier(f'Not a valid DID: {did!r}')
    if m.group('method') != DID_METHOD:
        raise MalformedIdentifier(f'Unsupported DID method: {m.group("method")!r}')

    try:
        fingerprint = base58.b58decode_check(m.group('id'))
    except ValueError as e:
        raise MalformedIdentifier(f'Invalid DID id string: {e}') from e
    if len(fingerprint) != FINGERPRINT_LENGTH:
        raise MalformedIdentifier('DID fingerprint has the wrong length')

    params = {}
    for part in m.group('params').split(';')[1:]:
        key, sep, value = part.partition('=')
        if not sep or key not in (PARAM_ADDRESS_BOOK, PARAM_TOPIC) or key in params:
            raise MalformedIdentifier(f'Invalid DID parameter: {part!r}')
        if not _ENTITY_ID_RE.match(value):
            raise MalformedIdentifier(f'Invalid entity id in DID parameter: {part!r}')
        params[key] = value

    return Did(
        network=m.group('network'),
        public_key_fingerprint=fingerprint,
        address_book=params.get(PARAM_ADDRESS_BOOK),
        topic_id=params.get(PARAM_TOPIC),
    )
