"""Fake Signer implementation for testing.

FakeSigner produces deterministic armored blocks that encode the key and a
digest of the payload, so verification catches any change to the signed bytes.
"""

import hashlib

from unstacked.core.errors import SigningUnavailable
from unstacked.core.signing.abc import Signer

_BEGIN = "-----BEGIN FAKE SIGNATURE-----"
_END = "-----END FAKE SIGNATURE-----"


class FakeSigner(Signer):
    """In-memory fake signer.

    This class has NO public setup methods. All state is provided via constructor
    or captured during execution.
    """

    def __init__(self, *, available: bool = True, known_keys: set[str] | None = None) -> None:
        """Create FakeSigner.

        Args:
            available: When False every call raises SigningUnavailable, as if the
                agent were unreachable
            known_keys: Keys that exist in the keyring; None means any key works
        """
        self._available = available
        self._known_keys = known_keys
        self._sign_calls: list[tuple[bytes, str]] = []
        self._verify_calls: list[tuple[bytes, str]] = []

    @property
    def sign_calls(self) -> list[tuple[bytes, str]]:
        """Read-only access to (payload, key_id) pairs passed to sign()."""
        return self._sign_calls

    @property
    def verify_calls(self) -> list[tuple[bytes, str]]:
        return self._verify_calls

    def sign(self, payload: bytes, key_id: str) -> str:
        self._check_key(key_id)
        self._sign_calls.append((payload, key_id))
        digest = hashlib.sha256(payload).hexdigest()
        return f"{_BEGIN}\nkey: {key_id}\ndigest: {digest}\n{_END}\n"

    def verify(self, payload: bytes, signature: str, key_id: str) -> bool:
        self._check_key(key_id)
        self._verify_calls.append((payload, key_id))
        fields: dict[str, str] = {}
        for line in signature.splitlines():
            name, sep, value = line.partition(": ")
            if sep:
                fields[name] = value
        if fields.get("key") != key_id:
            return False
        return fields.get("digest") == hashlib.sha256(payload).hexdigest()

    def _check_key(self, key_id: str) -> None:
        if not self._available:
            raise SigningUnavailable(key_id, "signing agent is not running")
        if self._known_keys is not None and key_id not in self._known_keys:
            raise SigningUnavailable(key_id, "no such key in the keyring")
