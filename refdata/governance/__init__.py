"""Freshness evaluation and access control for advisory reference data."""

from refdata.governance.access import (
    ADVISORY_NOTE,
    ALLOWED_PURPOSES,
    ExrPurpose,
    deny_exr_for_settlement,
    get_normalized_data_for_purpose,
    verify_exr_access,
)
from refdata.governance.staleness import (
    DEFAULT_CONFIG_KEY,
    PolicyDecision,
    ReferenceDataState,
    StalenessConfig,
    StalenessEvaluation,
    allow_automated_policy_change,
    evaluate_all_from_mirror,
    evaluate_mirror_dir,
    evaluate_series_staleness,
    evaluations_to_frame,
)

__all__ = [
    "ADVISORY_NOTE",
    "ALLOWED_PURPOSES",
    "DEFAULT_CONFIG_KEY",
    "ExrPurpose",
    "PolicyDecision",
    "ReferenceDataState",
    "StalenessConfig",
    "StalenessEvaluation",
    "allow_automated_policy_change",
    "deny_exr_for_settlement",
    "evaluate_all_from_mirror",
    "evaluate_mirror_dir",
    "evaluate_series_staleness",
    "evaluations_to_frame",
    "get_normalized_data_for_purpose",
    "verify_exr_access",
]
