"""Daily manifests: canonical, hashed, optionally signed attestations."""

from refdata.manifest.generator import (
    ManifestGenerator,
    diagnostics_filename,
    generate_daily_manifest,
    manifest_filename,
    serialize_entries,
    signature_filename,
)
from refdata.manifest.models import (
    DailyManifest,
    DiagnosticEntry,
    ManifestCounters,
    ManifestEntry,
    Severity,
)
from refdata.manifest.signing import (
    Ed25519Signer,
    LocalSigner,
    SignatureResult,
    Signer,
    verify_signature_record,
)

__all__ = [
    "DailyManifest",
    "DiagnosticEntry",
    "Ed25519Signer",
    "LocalSigner",
    "ManifestCounters",
    "ManifestEntry",
    "ManifestGenerator",
    "Severity",
    "SignatureResult",
    "Signer",
    "diagnostics_filename",
    "generate_daily_manifest",
    "manifest_filename",
    "serialize_entries",
    "signature_filename",
    "verify_signature_record",
]
