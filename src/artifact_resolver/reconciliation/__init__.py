"""Reconciliation of resolved records into the persistent catalog."""

from artifact_resolver.reconciliation.reconciler import (
    MetadataReconciler,
    ReconcileReport,
    combine_failures,
)

__all__ = ["MetadataReconciler", "ReconcileReport", "combine_failures"]
