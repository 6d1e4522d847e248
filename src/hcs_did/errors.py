class DidError(Exception):
    """Base class for every failure raised by hcs_did."""


class InvalidArgument(DidError, ValueError):
    pass


class MalformedIdentifier(DidError):
    pass


class MalformedDocument(DidError):
    pass


class RootKeyNotFound(DidError):
    pass


class MalformedEnvelope(DidError):
    pass


class MalformedPayload(DidError):
    pass


class DecryptionRequired(DidError):
    """Raised when an encrypted envelope is opened without a decrypter."""


class DecryptionFailed(DidError):
    pass


class EnvelopeStateError(DidError):
    """The requested operation is not allowed in the envelope's current state."""
