from .types import DidMethodOperation, EnvelopeMode, EnvelopeState, CryptoProvider, PublicKey
from .errors import (
    DidError,
    InvalidArgument,
    MalformedIdentifier,
    MalformedDocument,
    RootKeyNotFound,
    MalformedEnvelope,
    MalformedPayload,
    DecryptionRequired,
    DecryptionFailed,
    EnvelopeStateError,
)
from .crypto import generate_keypair, DidRootKey, Ed25519PublicKey, SecretBoxCipher, Ed25519CryptoProvider
from .did import Did, derive_did, parse_did
from .document import build_did_document, extract_root_key
from .envelope import MessageEnvelope, canonical_json
from .message import DidMessage
from .validation import BodyRequirementPolicy, STRICT_BODY_POLICY, DELETE_TOMBSTONE_POLICY
from .config import DidNetworkConfig
from .topic import InMemoryConsensusLog, DidTopicListener, PublishReceipt, publish_did_message

__all__ = [
    'DidMethodOperation',
    'EnvelopeMode',
    'EnvelopeState',
    'CryptoProvider',
    'PublicKey',
    'DidError',
    'InvalidArgument',
    'MalformedIdentifier',
    'MalformedDocument',
    'RootKeyNotFound',
    'MalformedEnvelope',
    'MalformedPayload',
    'DecryptionRequired',
    'DecryptionFailed',
    'EnvelopeStateError',
    'generate_keypair',
    'DidRootKey',
    'Ed25519PublicKey',
    'SecretBoxCipher',
    'Ed25519CryptoProvider',
    'Did',
    'derive_did',
    'parse_did',
    'build_did_document',
    'extract_root_key',
    'MessageEnvelope',
    'canonical_json',
    'DidMessage',
    'BodyRequirementPolicy',
    'STRICT_BODY_POLICY',
    'DELETE_TOMBSTONE_POLICY',
    'DidNetworkConfig',
    'InMemoryConsensusLog',
    'DidTopicListener',
    'PublishReceipt',
    'publish_did_message',
]
