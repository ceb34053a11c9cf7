"""Signing interface.

Implementations never fall back to unsigned output: if the key, agent or
executable cannot be reached they raise SigningUnavailable.
"""

from abc import ABC, abstractmethod


class Signer(ABC):
    """Abstract interface for producing and checking detached signatures."""

    @abstractmethod
    def sign(self, payload: bytes, key_id: str) -> str:
        """Return an ASCII-armored detached signature over ``payload``.

        Raises:
            SigningUnavailable: If the key or signing program cannot be used
        """
        ...

    @abstractmethod
    def verify(self, payload: bytes, signature: str, key_id: str) -> bool:
        """Check ``signature`` over ``payload`` against ``key_id``.

        Returns False when the signature was checked and is invalid or was made
        by a different key.

        Raises:
            SigningUnavailable: If the signature could not be checked at all
                (missing public key, missing executable)
        """
        ...
