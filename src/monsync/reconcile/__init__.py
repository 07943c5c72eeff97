"""Reconciliation of desired monitors against an eventually consistent remote."""

from monsync.reconcile.builder import BuildResult, DerivedDefaults, RequestBuilder
from monsync.reconcile.expectation import MonitorExpectation
from monsync.reconcile.merge import merge, merge_keep_shape
from monsync.reconcile.orchestrator import MonitorReconciler, OperationContext, OperationResult
from monsync.reconcile.settler import SettlePolicy, Settler
from monsync.reconcile.validation import validate_desired
from monsync.reconcile.variants import VARIANTS, MonitorVariant, variant_for

__all__ = [
    "VARIANTS",
    "BuildResult",
    "DerivedDefaults",
    "MonitorExpectation",
    "MonitorReconciler",
    "MonitorVariant",
    "OperationContext",
    "OperationResult",
    "RequestBuilder",
    "SettlePolicy",
    "Settler",
    "merge",
    "merge_keep_shape",
    "validate_desired",
    "variant_for",
]
