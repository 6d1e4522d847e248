import json
from typing import Any, Dict, Union

from .crypto import Ed25519PublicKey
from .did import Did
from .errors import InvalidArgument, MalformedDocument, RootKeyNotFound

DID_CONTEXT = 'https://www.w3.org/ns/did/v1'
DID_ROOT_KEY_NAME = '#did-root-key'
ED25519_2018 = 'Ed25519VerificationKey2018'
ED25519_2020 = 'Ed25519VerificationKey2020'


def root_key_id(did: Union[Did, str]) -> str:
    return str(did) + DID_ROOT_KEY_NAME


def build_did_document(did: Union[Did, str], public_key: Ed25519PublicKey) -> Dict[str, Any]:
    """Build the minimal DID document: the root key, usable for authentication and assertions."""
    did = str(did)
    key_id = root_key_id(did)
    return {
        '@context': DID_CONTEXT,
        'id': did,
        'verificationMethod': [{
            'id': key_id,
            'type': ED25519_2018,
            'controller': did,
            'publicKeyBase58': public_key.to_base58(),
        }],
        'authentication': [key_id],
        'assertionMethod': [key_id],
    }


def parse_did_document(document: Union[bytes, str, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(document, dict):
        doc = document
    else:
        try:
            doc = json.loads(document)
        except (ValueError, TypeError) as e:
            raise MalformedDocument(f'DID document is not valid JSON: {e}') from e
    if not isinstance(doc, dict):
        raise MalformedDocument('DID document must be a JSON object')
    if not isinstance(doc.get('id'), str):
        raise MalformedDocument('DID document has no id')
    return doc


def extract_root_key(document: Union[bytes, str, Dict[str, Any]]) -> Ed25519PublicKey:
    """
    Find the root key of a DID document: the verification method whose id is
    the document's own DID followed by "#did-root-key".
    """
    doc = parse_did_document(document)
    wanted = root_key_id(doc['id'])

    methods = []
    for section in ('verificationMethod', 'publicKey'):
        entries = doc.get(section, [])
        if not isinstance(entries, list):
            raise MalformedDocument(f'"{section}" must be a list')
        methods.extend(e for e in entries if isinstance(e, dict))

    for method in methods:
        if method.get('id') != wanted:
            continue
        try:
            if 'publicKeyBase58' in method:
                return Ed25519PublicKey.from_base58(method['publicKeyBase58'])
            if 'publicKeyMultibase' in method:
                return Ed25519PublicKey.from_multibase(method['publicKeyMultibase'])
        except (InvalidArgument, AttributeError, TypeError) as e:
            raise MalformedDocument(f'Root key {wanted} is not a valid Ed25519 key: {e}') from e
        raise MalformedDocument(f'Root key {wanted} carries no supported key encoding')

    raise RootKeyNotFound(f'No verification method {wanted} in DID document')
