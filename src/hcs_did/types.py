from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Type, TypeVar, Union, runtime_checkable


class DidMethodOperation(str, Enum):
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'
    REVOKE = 'revoke'


class EnvelopeMode(str, Enum):
    PLAIN = 'plain'
    ENCRYPTED = 'encrypted'


class EnvelopeState(str, Enum):
    EMPTY = 'empty'
    PAYLOAD_SET = 'payload_set'
    SIGNED = 'signed'
    ENCRYPTED = 'encrypted'
    SEALED = 'sealed'  # deserialized, still encrypted
    RECEIVED = 'received'  # deserialized, plain
    OPENED = 'opened'


@runtime_checkable
class PublicKey(Protocol):
    def verify(self, data: bytes, signature: bytes) -> Union[bool, Awaitable[bool]]:
        ...


P = TypeVar('P', bound='MessagePayload')


class MessagePayload(Protocol):
    """What an envelope needs from the message it carries."""

    def to_json_bytes(self) -> bytes:
        ...

    @classmethod
    def from_json_bytes(cls: Type[P], data: bytes, consensus_timestamp: Optional[datetime] = None) -> P:
        ...

    def is_valid(self, expected_topic: Optional[str] = None) -> bool:
        ...


class CryptoProvider(Protocol):
    """Injected cryptographic capability. Any method may be a coroutine."""

    def sign(self, data: bytes) -> Union[bytes, Awaitable[bytes]]:
        ...

    def verify(self, data: bytes, signature: bytes, key: PublicKey) -> Union[bool, Awaitable[bool]]:
        ...

    def encrypt(self, plaintext: bytes) -> Union[bytes, Awaitable[bytes]]:
        ...

    def decrypt(self, ciphertext: bytes, timestamp: Optional[datetime] = None) -> Union[bytes, Awaitable[bytes]]:
        ...


class AddressBookResolver(Protocol):
    def resolve(self, locator: str) -> List[str]:
        ...


Signer = Callable[[bytes], Union[bytes, Awaitable[bytes]]]
Encrypter = Callable[[bytes], Union[bytes, Awaitable[bytes]]]
Decrypter = Callable[[bytes, Optional[datetime]], Union[bytes, Awaitable[bytes]]]
KeyExtractor = Callable[[Any], Union[PublicKey, Awaitable[PublicKey]]]
Verifier = Callable[[bytes, bytes, PublicKey], Union[bool, Awaitable[bool]]]
