"""
Well-formedness and topic-binding rules for DID messages.

Every rule answers with a bool. A message that breaks a rule is rejected, it
is never an error: absent or mismatched data only makes the message invalid.
"""
import logging
from base64 import b64decode
from dataclasses import dataclass, field
from typing import FrozenSet

from .did import Did, parse_did
from .document import extract_root_key, parse_did_document
from .errors import DidError
from .types import DidMethodOperation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BodyRequirementPolicy:
    """Which operations may be published without a DID document."""
    tombstone_operations: FrozenSet[DidMethodOperation] = field(default_factory=frozenset)

    def requires_body(self, operation: DidMethodOperation) -> bool:
        return operation not in self.tombstone_operations


STRICT_BODY_POLICY = BodyRequirementPolicy()
DELETE_TOMBSTONE_POLICY = BodyRequirementPolicy(frozenset({DidMethodOperation.DELETE}))


def is_bound_to_topic(did: Did, expected_topic) -> bool:
    """False only when the DID names a topic other than expected_topic."""
    if did.topic_id is None:
        return True
    return did.topic_id == str(expected_topic)


def document_matches_did(did: Did, document_base64: str) -> bool:
    """The document must describe this DID and hold the root key the DID was derived from."""
    try:
        raw = b64decode(document_base64, validate=True)
        doc = parse_did_document(raw)
        if parse_did(doc['id']) != did:
            logger.debug('DID document id %s does not match message DID %s', doc['id'], did)
            return False
        root_key = extract_root_key(doc)
    except (DidError, ValueError) as e:
        logger.debug('DID document rejected: %s', e)
        return False
    if not did.matches_public_key(root_key):
        logger.debug('DID %s was not derived from its document root key', did)
        return False
    return True


def validate_did_message(
    message,
    expected_topic=None,
    policy: BodyRequirementPolicy = STRICT_BODY_POLICY,
) -> bool:
    if message.did is None:
        logger.debug('Message has no DID')
        return False
    try:
        did = parse_did(message.did)
    except DidError as e:
        logger.debug('Message DID rejected: %s', e)
        return False

    if message.did_document_base64 is None:
        if policy.requires_body(message.operation):
            logger.debug('%s message for %s has no DID document', message.operation, did)
            return False
    elif not document_matches_did(did, message.did_document_base64):
        return False

    if expected_topic is not None and not is_bound_to_topic(did, expected_topic):
        logger.debug('DID %s is not bound to topic %s', did, expected_topic)
        return False
    return True
