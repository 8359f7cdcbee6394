"""Detached signatures for daily manifests.

The generator only depends on the :class:`Signer` protocol: anything with a
``sign(bytes) -> SignatureResult`` method can seal a manifest, including an
HSM-backed implementation. :class:`LocalSigner` uses an ephemeral Ed25519 key
and exists for development and tests only.
"""

import base64
import binascii
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from refdata.shared.utils import sha256_hex


@dataclass(frozen=True)
class SignatureResult:
    signature_base64: str
    algorithm: str
    key_id: str | None = None


class Signer(Protocol):
    def sign(self, data: bytes) -> SignatureResult:
        """Sign raw bytes."""
        ...


class Ed25519Signer:
    """Sign with an Ed25519 private key held in process memory."""

    ALGORITHM = "ed25519"

    def __init__(self, private_key: Ed25519PrivateKey, key_id: str) -> None:
        self._private_key = private_key
        self.key_id = key_id

    @classmethod
    def from_pem(cls, key_path: Path, key_id: str | None = None) -> "Ed25519Signer":
        """Load an unencrypted PEM Ed25519 private key.

        Raises:
            ValueError: If the key is not an Ed25519 private key.
            FileNotFoundError: If the key file does not exist.
        """
        with open(key_path, "rb") as f:
            key_data = f.read()

        private_key = serialization.load_pem_private_key(key_data, password=None)
        if not isinstance(private_key, Ed25519PrivateKey):
            raise ValueError("Key must be Ed25519 private key")
        return cls(private_key, key_id or Path(key_path).stem)

    @property
    def public_key(self) -> Ed25519PublicKey:
        return self._private_key.public_key()

    def sign(self, data: bytes) -> SignatureResult:
        signature = self._private_key.sign(data)
        return SignatureResult(
            signature_base64=base64.b64encode(signature).decode("ascii"),
            algorithm=self.ALGORITHM,
            key_id=self.key_id,
        )


class LocalSigner(Ed25519Signer):
    """Ephemeral-key signer. Development and tests only, never production."""

    def __init__(self) -> None:
        super().__init__(Ed25519PrivateKey.generate(), "local-dev")


def build_signature_record(
    manifest_name: str,
    manifest_hash: str,
    result: SignatureResult,
    created_at_utc: str,
) -> dict[str, Any]:
    """Companion ``.sig.json`` content for a manifest."""
    return {
        "manifest": manifest_name,
        "manifest_hash": manifest_hash,
        "signer": {"algorithm": result.algorithm, "keyId": result.key_id},
        "signature": result.signature_base64,
        "created_at_utc": created_at_utc,
    }


def verify_signature_record(
    manifest_bytes: bytes,
    signature_record: dict[str, Any],
    public_key: Ed25519PublicKey,
) -> bool:
    """Check that a signature record attests exactly these manifest bytes."""
    if signature_record.get("manifest_hash") != sha256_hex(manifest_bytes):
        return False
    try:
        signature = base64.b64decode(signature_record["signature"], validate=True)
        public_key.verify(signature, manifest_bytes)
    except (InvalidSignature, KeyError, TypeError, binascii.Error):
        return False
    return True
