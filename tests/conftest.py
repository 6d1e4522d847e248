import pytest

from hcs_did import DidMessage, DidMethodOperation, DidRootKey, build_did_document, derive_did

NETWORK = 'testnet'
ADDRESS_BOOK = '0.0.1'
DID_TOPIC_ID1 = '0.0.2'
DID_TOPIC_ID2 = '0.0.3'


def make_document(root_key, topic_id=None):
    did = derive_did(NETWORK, root_key.public_key, ADDRESS_BOOK, topic_id)
    return did, build_did_document(did, root_key.public_key)


@pytest.fixture
def root_key():
    return DidRootKey.generate()


@pytest.fixture
def bound_message(root_key):
    _, doc = make_document(root_key, DID_TOPIC_ID1)
    return DidMessage.from_did_document(doc, DidMethodOperation.CREATE)


@pytest.fixture
def unbound_message(root_key):
    _, doc = make_document(root_key)
    return DidMessage.from_did_document(doc, DidMethodOperation.CREATE)
