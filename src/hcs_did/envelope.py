import binascii
import inspect
import json
import logging
from base64 import b64decode, b64encode
from datetime import datetime
from typing import Any, Generic, Optional, Type, Union

from .errors import DecryptionRequired, DidError, EnvelopeStateError, MalformedEnvelope
from .types import Decrypter, EnvelopeMode, EnvelopeState, Encrypter, KeyExtractor, P, Signer, Verifier

logger = logging.getLogger(__name__)


def canonical_json(obj: Any) -> str:
    """
    Create canonical JSON for signing: sorted keys, no whitespace.
    """
    return json.dumps(obj, separators=(',', ':'), sort_keys=True)


async def call_capability(fn, *args):
    """Call a caller-supplied capability, awaiting it if it is asynchronous."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def b64decode_strict(value: str) -> bytes:
    return b64decode(value.encode('ascii'), validate=True)


class MessageEnvelope(Generic[P]):
    """
    Signed and optionally encrypted container for a message of type P.

    The signature always covers the payload bytes exactly as they travel in
    the "message" field, so encryption has to happen before signing.
    """

    def __init__(self, payload_type: Type[P], message: Optional[P] = None):
        self.payload_type = payload_type
        self.mode = EnvelopeMode.PLAIN
        self.signature: Optional[bytes] = None
        self.consensus_timestamp: Optional[datetime] = None
        self._message = message
        # Frozen wire bytes; set once the payload is signed, encrypted or received.
        self._payload_bytes: Optional[bytes] = None
        self._state = EnvelopeState.EMPTY if message is None else EnvelopeState.PAYLOAD_SET

    @classmethod
    def create(cls, message: P) -> 'MessageEnvelope[P]':
        return cls(type(message), message)

    @property
    def state(self) -> EnvelopeState:
        return self._state

    @property
    def is_encrypted(self) -> bool:
        return self.mode == EnvelopeMode.ENCRYPTED

    @property
    def is_signed(self) -> bool:
        return self.signature is not None

    def attach(self, message: P) -> 'MessageEnvelope[P]':
        if self._state != EnvelopeState.EMPTY:
            raise EnvelopeStateError(f'Cannot attach a payload in state {self._state.value}')
        self._message = message
        self._state = EnvelopeState.PAYLOAD_SET
        return self

    def payload_bytes(self) -> bytes:
        """The bytes that are (or will be) signed and sent as "message"."""
        if self._payload_bytes is not None:
            return self._payload_bytes
        if self._message is None:
            raise EnvelopeStateError('Envelope has no payload')
        return self._message.to_json_bytes()

    async def sign(self, signer: Signer) -> 'MessageEnvelope[P]':
        data = self.payload_bytes()
        signature = await call_capability(signer, data)
        if not isinstance(signature, (bytes, bytearray)):
            raise TypeError('Signer must return bytes')
        self._payload_bytes = data
        self.signature = bytes(signature)
        if self._state in (EnvelopeState.PAYLOAD_SET, EnvelopeState.ENCRYPTED):
            self._state = EnvelopeState.SIGNED
        return self

    async def encrypt(self, encrypter: Encrypter) -> 'MessageEnvelope[P]':
        if self.is_encrypted:
            raise EnvelopeStateError('Envelope is already encrypted')
        if self.signature is not None:
            raise EnvelopeStateError('Envelope is already signed; encrypt before signing')
        if self._state != EnvelopeState.PAYLOAD_SET:
            raise EnvelopeStateError(f'Cannot encrypt in state {self._state.value}')
        ciphertext = await call_capability(encrypter, self.payload_bytes())
        if not isinstance(ciphertext, (bytes, bytearray)):
            raise TypeError('Encrypter must return bytes')
        self._payload_bytes = bytes(ciphertext)
        self._message = None
        self.mode = EnvelopeMode.ENCRYPTED
        self._state = EnvelopeState.ENCRYPTED
        return self

    def to_dict(self) -> dict:
        return {
            'mode': self.mode.value,
            'message': b64encode(self.payload_bytes()).decode('ascii'),
            'signature': b64encode(self.signature).decode('ascii') if self.signature is not None else None,
        }

    def to_json(self) -> bytes:
        return canonical_json(self.to_dict()).encode('utf-8')

    @classmethod
    def from_json(
        cls,
        data: Union[bytes, str],
        payload_type: Type[P],
        consensus_timestamp: Optional[datetime] = None,
    ) -> 'MessageEnvelope[P]':
        """
        Read an envelope received from the log. consensus_timestamp is the
        time the log assigned to the entry, if known.

        Only the envelope structure is checked here; the payload is parsed by
        open(), so a corrupted payload still reaches is_signature_valid.
        """
        try:
            obj = json.loads(data)
        except (ValueError, TypeError) as e:
            raise MalformedEnvelope(f'Envelope is not valid JSON: {e}') from e
        if not isinstance(obj, dict):
            raise MalformedEnvelope('Envelope must be a JSON object')

        try:
            mode = EnvelopeMode(obj.get('mode', EnvelopeMode.PLAIN.value))
        except ValueError as e:
            raise MalformedEnvelope(f'Unknown envelope mode: {obj.get("mode")!r}') from e

        message = obj.get('message')
        signature = obj.get('signature')
        if not isinstance(message, str):
            raise MalformedEnvelope('Envelope has no message')
        if signature is not None and not isinstance(signature, str):
            raise MalformedEnvelope('Envelope signature must be a string')
        try:
            payload = b64decode_strict(message)
            signature = b64decode_strict(signature) if signature is not None else None
        except (binascii.Error, ValueError) as e:
            raise MalformedEnvelope(f'Envelope field is not valid base64: {e}') from e

        env = cls(payload_type)
        env.mode = mode
        env.signature = signature
        env.consensus_timestamp = consensus_timestamp
        env._payload_bytes = payload
        env._state = EnvelopeState.SEALED if mode == EnvelopeMode.ENCRYPTED else EnvelopeState.RECEIVED
        return env

    async def open(self, decrypter: Optional[Decrypter] = None) -> P:
        """
        Return the carried message, decrypting it first when the envelope is
        encrypted. Raises DecryptionRequired if it is and no decrypter is given.
        """
        if self._payload_bytes is None:
            if self._message is None:
                raise EnvelopeStateError('Envelope has no payload')
            return self._message

        data = self._payload_bytes
        if self.is_encrypted:
            if decrypter is None:
                raise DecryptionRequired('Envelope is encrypted and no decrypter was given')
            data = await call_capability(decrypter, data, self.consensus_timestamp)

        message = self.payload_type.from_json_bytes(data, self.consensus_timestamp)
        if self._state in (EnvelopeState.SEALED, EnvelopeState.RECEIVED):
            self._state = EnvelopeState.OPENED
        return message

    async def is_signature_valid(
        self,
        key_extractor: KeyExtractor,
        decrypter: Optional[Decrypter] = None,
        verifier: Optional[Verifier] = None,
    ) -> bool:
        """
        Check the signature against the key key_extractor finds in the opened
        message. An encrypted envelope without a decrypter fails closed.

        verifier(data, signature, key) defaults to the key's own verify.
        """
        if self.signature is None:
            logger.debug('Envelope is not signed')
            return False
        if self.is_encrypted and decrypter is None:
            logger.warning('Cannot check signature of an encrypted envelope without a decrypter')
            return False

        try:
            message = await self.open(decrypter)
            key = await call_capability(key_extractor, message)
        except DidError as e:
            logger.debug('Could not extract signing key: %s', e)
            return False
        if key is None:
            return False
        if verifier is None:
            return bool(await call_capability(key.verify, self.payload_bytes(), self.signature))
        return bool(await call_capability(verifier, self.payload_bytes(), self.signature, key))
