"""Dry-run Signer wrapper: never touches the signing key."""

from unstacked.core.signing.abc import Signer

DRY_RUN_SIGNATURE = "-----BEGIN PGP SIGNATURE-----\n\n(dry run)\n-----END PGP SIGNATURE-----\n"


class DryRunSigner(Signer):
    """Returns a placeholder from sign() and delegates verify() to the wrapped signer."""

    def __init__(self, wrapped: Signer) -> None:
        self._wrapped = wrapped

    def sign(self, payload: bytes, key_id: str) -> str:
        return DRY_RUN_SIGNATURE

    def verify(self, payload: bytes, signature: str, key_id: str) -> bool:
        return self._wrapped.verify(payload, signature, key_id)
