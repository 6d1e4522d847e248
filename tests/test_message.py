import base64
import json

import pytest

from conftest import ADDRESS_BOOK, DID_TOPIC_ID1, DID_TOPIC_ID2, NETWORK, make_document
from hcs_did import (
    DELETE_TOMBSTONE_POLICY,
    DecryptionRequired,
    DidMessage,
    DidMethodOperation,
    DidRootKey,
    MalformedDocument,
    MalformedPayload,
    MessageEnvelope,
    SecretBoxCipher,
    derive_did,
)

SECRET = 'Secret encryption password'


def text_encrypt(cipher):
    return lambda plaintext: base64.b64encode(cipher.encrypt(plaintext.encode('utf-8'))).decode('ascii')


def text_decrypt(cipher):
    return lambda ciphertext, timestamp: cipher.decrypt(base64.b64decode(ciphertext)).decode('utf-8')


def root_key_of(message):
    return message.extract_did_root_key()


async def test_valid_message(root_key, unbound_message):
    original = MessageEnvelope.create(unbound_message)
    wire = (await original.sign(root_key.sign)).to_json()

    envelope = MessageEnvelope.from_json(wire, DidMessage)

    assert await envelope.is_signature_valid(root_key_of)
    received = await envelope.open()
    assert received == unbound_message
    assert received.is_valid()
    assert received.is_valid(DID_TOPIC_ID1)


async def test_encrypted_message(root_key, unbound_message):
    cipher = SecretBoxCipher.generate()
    original = MessageEnvelope.create(unbound_message)
    await original.encrypt(DidMessage.get_encrypter(text_encrypt(cipher)))
    wire = (await original.sign(root_key.sign)).to_json()

    envelope = MessageEnvelope.from_json(wire, DidMessage)
    with pytest.raises(DecryptionRequired):
        await envelope.open()

    decrypter = DidMessage.get_decrypter(text_decrypt(cipher))
    decrypted = await envelope.open(decrypter)
    assert decrypted.did_document_base64 == unbound_message.did_document_base64
    assert decrypted.did == unbound_message.did
    assert await envelope.is_signature_valid(root_key_of, decrypter)


async def test_encrypted_message_with_passphrase_cipher(root_key, unbound_message):
    sender = SecretBoxCipher.from_passphrase(SECRET)
    receiver = SecretBoxCipher.from_passphrase(SECRET)
    envelope = MessageEnvelope.create(unbound_message)
    await envelope.encrypt(sender.encrypt)
    await envelope.sign(root_key.sign)

    received = MessageEnvelope.from_json(envelope.to_json(), DidMessage)
    assert (await received.open(receiver.decrypt)) == unbound_message


async def test_invalid_did(root_key, unbound_message):
    wire = (await MessageEnvelope.create(unbound_message).sign(root_key.sign)).to_json()
    message = await MessageEnvelope.from_json(wire, DidMessage).open()

    different = derive_did(NETWORK, DidRootKey.generate().public_key, ADDRESS_BOOK)
    message.did = different.to_did()

    assert not message.is_valid()


async def test_invalid_topic(root_key, bound_message):
    wire = (await MessageEnvelope.create(bound_message).sign(root_key.sign)).to_json()
    message = await MessageEnvelope.from_json(wire, DidMessage).open()

    assert message.is_valid(DID_TOPIC_ID1)
    assert not message.is_valid(DID_TOPIC_ID2)


def test_unbound_did_is_valid_on_any_topic(unbound_message):
    assert unbound_message.is_valid(DID_TOPIC_ID1)
    assert unbound_message.is_valid(DID_TOPIC_ID2)


def test_operation_given_as_text(bound_message):
    message = DidMessage('create', bound_message.did, None)
    assert message.operation == DidMethodOperation.CREATE
    assert not message.is_valid()
    assert DidMessage('delete', bound_message.did, None).is_valid(policy=DELETE_TOMBSTONE_POLICY)


def test_unknown_operation_is_rejected(bound_message):
    with pytest.raises(ValueError):
        DidMessage('rename', bound_message.did, None)


def test_missing_data(bound_message):
    operation = DidMethodOperation.CREATE

    message = DidMessage(operation, None, bound_message.did_document_base64)
    assert not message.is_valid()

    message = DidMessage(operation, bound_message.did, None)
    assert not message.is_valid()
    assert message.did_document is None
    assert message.did == bound_message.did
    assert message.operation == operation


def test_is_valid_is_repeatable(bound_message):
    results = {bound_message.is_valid(DID_TOPIC_ID1) for _ in range(3)}
    assert results == {True}


def test_delete_without_body_depends_on_policy(bound_message):
    tombstone = DidMessage(DidMethodOperation.DELETE, bound_message.did, None)
    assert not tombstone.is_valid(DID_TOPIC_ID1)
    assert tombstone.is_valid(DID_TOPIC_ID1, DELETE_TOMBSTONE_POLICY)

    update = DidMessage(DidMethodOperation.UPDATE, bound_message.did, None)
    assert not update.is_valid(DID_TOPIC_ID1, DELETE_TOMBSTONE_POLICY)


def test_document_not_derived_from_root_key(root_key):
    did, _ = make_document(root_key)
    _, other_doc = make_document(DidRootKey.generate())
    other_doc['id'] = did.to_did()
    other_doc['verificationMethod'][0]['id'] = did.to_did() + '#did-root-key'
    message = DidMessage.from_did_document(other_doc, DidMethodOperation.UPDATE)
    assert not message.is_valid()


async def test_invalid_signature(bound_message):
    wire = (await MessageEnvelope.create(bound_message).sign(DidRootKey.generate().sign)).to_json()
    envelope = MessageEnvelope.from_json(wire, DidMessage)

    assert not await envelope.is_signature_valid(root_key_of)


def test_from_did_document_accepts_json_text(root_key):
    _, doc = make_document(root_key)
    from_dict = DidMessage.from_did_document(doc, DidMethodOperation.CREATE)
    from_text = DidMessage.from_did_document(json.dumps(doc, indent=2), DidMethodOperation.CREATE)
    assert from_dict == from_text
    assert from_dict.consensus_timestamp is None
    assert json.loads(from_dict.did_document) == doc


def test_from_did_document_rejects_bad_id(root_key):
    _, doc = make_document(root_key)
    doc['id'] = 'did:example:123'
    with pytest.raises(MalformedDocument):
        DidMessage.from_did_document(doc, DidMethodOperation.CREATE)


def test_extract_root_key(root_key, bound_message):
    assert bound_message.extract_did_root_key() == root_key.public_key


def test_extract_root_key_without_body(bound_message):
    with pytest.raises(MalformedDocument):
        DidMessage(DidMethodOperation.CREATE, bound_message.did, None).extract_did_root_key()


def test_json_uses_wire_field_names(bound_message):
    assert json.loads(bound_message.to_json_bytes()) == {
        'operation': 'create',
        'did': bound_message.did,
        'didDocumentBase64': bound_message.did_document_base64,
        'timestamp': None,
    }


@pytest.mark.parametrize('payload', [
    b'not json',
    b'[]',
    b'{"operation": "rename", "did": null, "didDocumentBase64": null}',
    b'{"operation": "create", "did": 5, "didDocumentBase64": null}',
    b'{"operation": "create", "did": null, "didDocumentBase64": "%%%"}',
    b'{"operation": "create", "did": null, "didDocumentBase64": null, "timestamp": "yesterday"}',
    b'{"operation": "create", "did": null, "didDocumentBase64": null, "timestamp": 1000000000000000000000000000000}',
])
def test_malformed_payload(payload):
    with pytest.raises(MalformedPayload):
        DidMessage.from_json_bytes(payload)


def test_epoch_nanos_timestamp():
    message = DidMessage.from_json_bytes(
        b'{"operation": "revoke", "did": null, "didDocumentBase64": null, "timestamp": 1700000000123456789}'
    )
    assert message.consensus_timestamp.timestamp() == pytest.approx(1700000000.123456)
    assert message.operation == DidMethodOperation.REVOKE
