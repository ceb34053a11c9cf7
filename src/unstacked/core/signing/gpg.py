"""Signer backed by the gpg executable, invoked the same way git invokes it."""

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass

from unstacked.core.errors import SigningUnavailable
from unstacked.core.signing.abc import Signer

logger = logging.getLogger(__name__)

STATUS_PREFIX = "[GNUPG:] "
# Shorter suffixes collide across unrelated keys
LONG_KEY_ID_LENGTH = 16


@dataclass(frozen=True)
class VerifyStatus:
    """Facts extracted from gpg's --status-fd output."""

    good: bool = False
    bad: bool = False
    revoked_or_expired: bool = False
    missing_key: bool = False
    error: bool = False
    key_id: str | None = None
    fingerprint: str | None = None
    primary_fingerprint: str | None = None
    uid: str | None = None

    def matches_key(self, wanted: str) -> bool:
        """Check whether the signing key is the one the user configured.

        ``wanted`` may be a key id, a fingerprint (or a suffix of one at least
        as long as a long key id) or an email address from the key's user id.
        """
        normalized = wanted.upper().removeprefix("0X").replace(" ", "")
        for candidate in (self.fingerprint, self.primary_fingerprint, self.key_id):
            if candidate is None:
                continue
            candidate = candidate.upper()
            if candidate == normalized:
                return True
            if len(normalized) >= LONG_KEY_ID_LENGTH and candidate.endswith(normalized):
                return True
        if self.uid is not None and "@" in wanted:
            return f"<{wanted.lower()}>" in self.uid.lower() or wanted.lower() == self.uid.lower()
        return False


def parse_verify_status(output: str) -> VerifyStatus:
    good = False
    bad = False
    revoked_or_expired = False
    missing_key = False
    error = False
    key_id: str | None = None
    fingerprint: str | None = None
    primary_fingerprint: str | None = None
    uid: str | None = None

    for line in output.splitlines():
        if not line.startswith(STATUS_PREFIX):
            continue
        keyword, _, rest = line[len(STATUS_PREFIX) :].partition(" ")
        fields = rest.split(" ")
        if keyword == "GOODSIG":
            good = True
            key_id = fields[0]
            uid = rest.partition(" ")[2] or None
        elif keyword == "BADSIG":
            bad = True
            key_id = fields[0]
            uid = rest.partition(" ")[2] or None
        elif keyword in ("EXPKEYSIG", "REVKEYSIG", "EXPSIG"):
            revoked_or_expired = True
            key_id = fields[0]
        elif keyword == "VALIDSIG":
            fingerprint = fields[0]
            if len(fields) >= 10:
                primary_fingerprint = fields[9]
        elif keyword == "NO_PUBKEY":
            missing_key = True
            key_id = key_id or fields[0]
        elif keyword == "ERRSIG":
            error = True
            key_id = key_id or fields[0]

    return VerifyStatus(
        good=good,
        bad=bad,
        revoked_or_expired=revoked_or_expired,
        missing_key=missing_key,
        error=error,
        key_id=key_id,
        fingerprint=fingerprint,
        primary_fingerprint=primary_fingerprint,
        uid=uid,
    )


class GpgSigner(Signer):
    """Production signer that shells out to gpg.

    Signing uses ``--status-fd=2 -bsau <key>`` and verification uses
    ``--status-fd=1 --verify <sigfile> -``, the invocations git itself uses for
    commit.gpgsign and verify-commit.
    """

    def __init__(self, program: str = "gpg") -> None:
        self._program = program

    def sign(self, payload: bytes, key_id: str) -> str:
        cmd = [self._program, "--status-fd=2", "-bsau", key_id]
        try:
            result = subprocess.run(cmd, input=payload, capture_output=True, check=False)
        except FileNotFoundError:
            raise SigningUnavailable(key_id, f"{self._program} executable not found") from None

        stderr = result.stderr.decode("utf-8", errors="replace")
        if result.returncode != 0 or f"{STATUS_PREFIX}SIG_CREATED " not in stderr:
            reason = stderr.strip().splitlines()[-1] if stderr.strip() else "gpg failed to sign"
            raise SigningUnavailable(key_id, reason)

        logger.debug("Signed %d bytes with %s", len(payload), key_id)
        return result.stdout.decode("ascii")

    def verify(self, payload: bytes, signature: str, key_id: str) -> bool:
        fd, signature_path = tempfile.mkstemp(prefix="unstacked-sig-", suffix=".asc")
        try:
            with os.fdopen(fd, "w", encoding="ascii") as handle:
                handle.write(signature)
            cmd = [
                self._program,
                "--status-fd=1",
                "--keyid-format=long",
                "--verify",
                signature_path,
                "-",
            ]
            try:
                result = subprocess.run(cmd, input=payload, capture_output=True, check=False)
            except FileNotFoundError:
                raise SigningUnavailable(key_id, f"{self._program} executable not found") from None
        finally:
            os.unlink(signature_path)

        status = parse_verify_status(result.stdout.decode("utf-8", errors="replace"))
        if status.bad or status.revoked_or_expired:
            return False
        if status.good:
            return status.matches_key(key_id)
        if status.missing_key:
            raise SigningUnavailable(key_id, f"public key {status.key_id} is not in the keyring")
        if status.error:
            raise SigningUnavailable(key_id, "gpg could not check the signature")
        raise SigningUnavailable(key_id, "gpg produced no verification status")
