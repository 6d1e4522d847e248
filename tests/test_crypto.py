import pytest

from hcs_did import (
    DecryptionFailed,
    DidRootKey,
    Ed25519CryptoProvider,
    Ed25519PublicKey,
    InvalidArgument,
    SecretBoxCipher,
    generate_keypair,
)


def test_generate_keypair():
    seed, public_key = generate_keypair()
    assert len(seed) == 32
    assert DidRootKey.from_seed(seed).public_key == Ed25519PublicKey(public_key)


def test_sign_and_verify():
    key = DidRootKey.generate()
    signature = key.sign(b'payload')
    assert key.public_key.verify(b'payload', signature)
    assert not key.public_key.verify(b'other payload', signature)
    assert not DidRootKey.generate().public_key.verify(b'payload', signature)


def test_verify_never_raises_on_garbage_signature():
    key = DidRootKey.generate().public_key
    assert not key.verify(b'payload', b'short')
    assert not key.verify(b'payload', None)


def test_key_encodings():
    key = DidRootKey.generate().public_key
    assert Ed25519PublicKey.from_base58(key.to_base58()) == key
    assert Ed25519PublicKey.from_multibase(key.to_multibase()) == key
    assert key.to_multibase().startswith('z6Mk')


def test_key_length_is_checked():
    with pytest.raises(InvalidArgument):
        Ed25519PublicKey(b'\x00' * 31)
    with pytest.raises(InvalidArgument):
        DidRootKey.from_seed(b'\x00' * 16)


def test_cipher_round_trip():
    cipher = SecretBoxCipher.generate()
    ciphertext = cipher.encrypt(b'secret')
    assert ciphertext != b'secret'
    assert cipher.decrypt(ciphertext) == b'secret'


def test_cipher_rejects_wrong_key():
    ciphertext = SecretBoxCipher.generate().encrypt(b'secret')
    with pytest.raises(DecryptionFailed):
        SecretBoxCipher.generate().decrypt(ciphertext)


def test_passphrase_cipher_is_deterministic():
    ciphertext = SecretBoxCipher.from_passphrase('correct horse').encrypt(b'secret')
    assert SecretBoxCipher.from_passphrase('correct horse').decrypt(ciphertext) == b'secret'
    with pytest.raises(DecryptionFailed):
        SecretBoxCipher.from_passphrase('wrong horse').decrypt(ciphertext)


def test_provider():
    key = DidRootKey.generate()
    provider = Ed25519CryptoProvider(key, SecretBoxCipher.generate())
    signature = provider.sign(b'data')
    assert provider.verify(b'data', signature, key.public_key)
    assert provider.decrypt(provider.encrypt(b'data')) == b'data'


def test_provider_without_cipher():
    provider = Ed25519CryptoProvider(DidRootKey.generate())
    with pytest.raises(InvalidArgument):
        provider.encrypt(b'data')
