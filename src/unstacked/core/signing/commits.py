"""Sign and verify commit objects."""

from dataclasses import replace

from unstacked.core.errors import VerificationFailed
from unstacked.core.signing.abc import Signer
from unstacked.core.store.codec import signing_payload
from unstacked.core.store.types import Commit


def sign_commit(signer: Signer, commit: Commit, key_id: str) -> Commit:
    """Return ``commit`` carrying a fresh signature over its signing payload.

    Any existing signature is discarded first; it covers a different payload.
    """
    unsigned = replace(commit, signature=None)
    signature = signer.sign(signing_payload(unsigned), key_id)
    return replace(unsigned, signature=signature)


def verify_commit(signer: Signer, commit: Commit, key_id: str) -> bool:
    if commit.signature is None:
        return False
    return signer.verify(signing_payload(commit), commit.signature, key_id)


def ensure_verified(signer: Signer, commit: Commit, subject: str, key_id: str) -> None:
    """Raise VerificationFailed unless ``commit`` carries a valid signature by ``key_id``."""
    if not verify_commit(signer, commit, key_id):
        raise VerificationFailed(key_id, subject)
