import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .did import Did, derive_did
from .errors import InvalidArgument

ENV_PREFIX = 'HCS_DID_'


@dataclass(frozen=True)
class DidNetworkConfig:
    """Network, address book and (optionally) DID topic that DIDs are derived for."""
    network: str
    address_book: str
    did_topic: Optional[str] = None

    @classmethod
    def from_mapping(cls, values: Mapping[str, str], prefix: str = '') -> 'DidNetworkConfig':
        def get(name: str) -> Optional[str]:
            value = (values.get(prefix + name) or '').strip()
            return value or None

        network = get('NETWORK')
        address_book = get('ADDRESS_BOOK')
        if network is None or address_book is None:
            raise InvalidArgument(f'{prefix}NETWORK and {prefix}ADDRESS_BOOK must be set')
        return cls(network=network, address_book=address_book, did_topic=get('TOPIC'))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'DidNetworkConfig':
        return cls.from_mapping(os.environ if environ is None else environ, prefix=ENV_PREFIX)

    def derive_did(self, public_key) -> Did:
        return derive_did(self.network, public_key, self.address_book, self.did_topic)
