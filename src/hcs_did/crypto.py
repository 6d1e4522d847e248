from datetime import datetime
from typing import Optional, Tuple

import base58
from nacl import pwhash
from nacl.exceptions import BadSignatureError, CryptoError
from nacl.secret import SecretBox
from nacl.signing import SigningKey, VerifyKey
from nacl.utils import random

from .errors import DecryptionFailed, InvalidArgument

ED25519_KEY_LENGTH = 32
ED25519_MULTICODEC_PREFIX = bytes([0xED, 0x01])


def generate_keypair() -> Tuple[bytes, bytes]:
    """New DID root key material as raw (seed, public_key) bytes."""
    sk = SigningKey.generate()
    return bytes(sk), bytes(sk.verify_key)


class Ed25519PublicKey:
    """Raw Ed25519 public key able to check signatures."""

    def __init__(self, raw: bytes):
        raw = bytes(raw)
        if len(raw) != ED25519_KEY_LENGTH:
            raise InvalidArgument('Ed25519 public key must be 32 bytes')
        self._raw = raw

    @classmethod
    def from_base58(cls, encoded: str) -> 'Ed25519PublicKey':
        try:
            return cls(base58.b58decode(encoded))
        except ValueError as e:
            raise InvalidArgument(f'Invalid base58 public key: {e}') from e

    @classmethod
    def from_multibase(cls, encoded: str) -> 'Ed25519PublicKey':
        if not encoded.startswith('z'):
            raise InvalidArgument('Only base58btc multibase keys are supported')
        try:
            decoded = base58.b58decode(encoded[1:])
        except ValueError as e:
            raise InvalidArgument(f'Invalid multibase public key: {e}') from e
        if decoded[:2] != ED25519_MULTICODEC_PREFIX:
            raise InvalidArgument('Invalid multicodec prefix, expected 0xed01')
        return cls(decoded[2:])

    def to_base58(self) -> str:
        return base58.b58encode(self._raw).decode('ascii')

    def to_multibase(self) -> str:
        return 'z' + base58.b58encode(ED25519_MULTICODEC_PREFIX + self._raw).decode('ascii')

    def verify(self, data: bytes, signature: bytes) -> bool:
        """
        Verify an Ed25519 signature over data. Never raises for a bad signature.
        """
        try:
            VerifyKey(self._raw).verify(data, signature)
            return True
        except (BadSignatureError, ValueError, TypeError):
            return False

    def __bytes__(self) -> bytes:
        return self._raw

    def __eq__(self, other):
        if not isinstance(other, Ed25519PublicKey):
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self):
        return hash(self._raw)

    def __repr__(self):
        return f'Ed25519PublicKey({self.to_base58()})'


class DidRootKey:
    """Ed25519 private key that controls a DID."""

    def __init__(self, signing_key: SigningKey):
        self._sk = signing_key

    @classmethod
    def generate(cls) -> 'DidRootKey':
        return cls(SigningKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> 'DidRootKey':
        if len(seed) != ED25519_KEY_LENGTH:
            raise InvalidArgument('Ed25519 seed must be 32 bytes')
        return cls(SigningKey(seed))

    @property
    def public_key(self) -> Ed25519PublicKey:
        return Ed25519PublicKey(bytes(self._sk.verify_key))

    @property
    def seed(self) -> bytes:
        return bytes(self._sk)

    def sign(self, data: bytes) -> bytes:
        return self._sk.sign(data).signature


class SecretBoxCipher:
    """
    Symmetric authenticated cipher (XSalsa20-Poly1305) for encrypted envelopes.
    The nonce is generated per message and prepended to the ciphertext.
    """

    KEY_SIZE = SecretBox.KEY_SIZE
    # Fixed salt so the same passphrase derives the same key on every participant.
    PASSPHRASE_SALT = b'hcs-did-envelope'

    def __init__(self, key: bytes):
        if len(key) != self.KEY_SIZE:
            raise InvalidArgument(f'Cipher key must be {self.KEY_SIZE} bytes')
        self._box = SecretBox(key)

    @classmethod
    def generate(cls) -> 'SecretBoxCipher':
        return cls(random(cls.KEY_SIZE))

    @classmethod
    def from_passphrase(cls, passphrase: str) -> 'SecretBoxCipher':
        key = pwhash.argon2id.kdf(
            cls.KEY_SIZE,
            passphrase.encode('utf-8'),
            cls.PASSPHRASE_SALT,
            opslimit=pwhash.argon2id.OPSLIMIT_INTERACTIVE,
            memlimit=pwhash.argon2id.MEMLIMIT_INTERACTIVE,
        )
        return cls(key)

    def encrypt(self, plaintext: bytes) -> bytes:
        return bytes(self._box.encrypt(plaintext))

    def decrypt(self, ciphertext: bytes, timestamp: Optional[datetime] = None) -> bytes:
        try:
            return self._box.decrypt(ciphertext)
        except CryptoError as e:
            raise DecryptionFailed('Ciphertext could not be decrypted') from e


class Ed25519CryptoProvider:
    """CryptoProvider backed by a DID root key and an optional envelope cipher."""

    def __init__(self, root_key: DidRootKey, cipher: Optional[SecretBoxCipher] = None):
        self.root_key = root_key
        self.cipher = cipher

    def sign(self, data: bytes) -> bytes:
        return self.root_key.sign(data)

    def verify(self, data: bytes, signature: bytes, key) -> bool:
        return key.verify(data, signature)

    def encrypt(self, plaintext: bytes) -> bytes:
        return self._require_cipher().encrypt(plaintext)

    def decrypt(self, ciphertext: bytes, timestamp: Optional[datetime] = None) -> bytes:
        return self._require_cipher().decrypt(ciphertext, timestamp)

    def _require_cipher(self) -> SecretBoxCipher:
        if self.cipher is None:
            raise InvalidArgument('No cipher configured for this provider')
        return self.cipher
