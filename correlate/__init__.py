"""
Correlate package: resolve emails to users and decide merge evidence for issues.
"""

from .identity import resolve_user, resolve_users
from .merge_evidence import MergeEvidenceClassifier, has_merged_pr

__all__ = ["resolve_user", "resolve_users", "MergeEvidenceClassifier", "has_merged_pr"]
