"""Tests for manifest signatures."""

import base64

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.rsa import generate_private_key

from refdata.manifest.signing import (
    Ed25519Signer,
    LocalSigner,
    build_signature_record,
    verify_signature_record,
)
from refdata.shared.utils import sha256_hex

MANIFEST = b'{"payload_hash":"aa","retrieved_at_utc":"2023-01-01T00:00:00Z","series_id":"A"}\n'


def _write_pem(path, key) -> None:
    path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )


def _signed_record(signer):
    result = signer.sign(MANIFEST)
    return build_signature_record(
        "manifest-2023-01-01.ndjson", sha256_hex(MANIFEST), result, "2023-01-02T00:00:00.000Z"
    )


class TestSigners:
    def test_local_signer(self):
        result = LocalSigner().sign(MANIFEST)
        assert result.algorithm == "ed25519"
        assert result.key_id == "local-dev"
        assert len(base64.b64decode(result.signature_base64)) == 64

    def test_local_signers_use_distinct_keys(self):
        assert LocalSigner().sign(MANIFEST) != LocalSigner().sign(MANIFEST)

    def test_from_pem(self, tmp_path):
        key = Ed25519PrivateKey.generate()
        path = tmp_path / "ops-2023.pem"
        _write_pem(path, key)

        signer = Ed25519Signer.from_pem(path)
        assert signer.key_id == "ops-2023"
        record = _signed_record(signer)
        assert verify_signature_record(MANIFEST, record, key.public_key())

    def test_from_pem_explicit_key_id(self, tmp_path):
        path = tmp_path / "k.pem"
        _write_pem(path, Ed25519PrivateKey.generate())
        assert Ed25519Signer.from_pem(path, key_id="hsm-1").key_id == "hsm-1"

    def test_from_pem_rejects_non_ed25519(self, tmp_path):
        path = tmp_path / "rsa.pem"
        _write_pem(path, generate_private_key(public_exponent=65537, key_size=2048))
        with pytest.raises(ValueError, match="Ed25519"):
            Ed25519Signer.from_pem(path)

    def test_from_pem_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Ed25519Signer.from_pem(tmp_path / "absent.pem")


class TestVerify:
    def test_record_shape(self):
        record = _signed_record(LocalSigner())
        assert record["manifest"] == "manifest-2023-01-01.ndjson"
        assert record["manifest_hash"] == sha256_hex(MANIFEST)
        assert record["signer"] == {"algorithm": "ed25519", "keyId": "local-dev"}
        assert record["created_at_utc"] == "2023-01-02T00:00:00.000Z"

    def test_tampered_manifest(self):
        signer = LocalSigner()
        record = _signed_record(signer)
        assert not verify_signature_record(MANIFEST + b"x", record, signer.public_key)

    def test_wrong_key(self):
        record = _signed_record(LocalSigner())
        assert not verify_signature_record(MANIFEST, record, LocalSigner().public_key)

    def test_corrupt_signature(self):
        signer = LocalSigner()
        record = _signed_record(signer)
        record["signature"] = "%%%"
        assert not verify_signature_record(MANIFEST, record, signer.public_key)

    def test_missing_signature(self):
        signer = LocalSigner()
        record = _signed_record(signer)
        del record["signature"]
        assert not verify_signature_record(MANIFEST, record, signer.public_key)
