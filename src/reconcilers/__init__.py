"""
Ensure steps package.

One step per kind a SimpleApp owns. The reconciler runs them in a fixed
order: workload, endpoint, route.
"""

from reconcilers.base import (
    EnsureOutcome,
    EnsureResult,
    EnsureStep,
    ReconcilePhase,
    ReconcileResult,
)
from reconcilers.endpoint import EndpointReconciler
from reconcilers.route import RouteReconciler
from reconcilers.workload import WorkloadReconciler

__all__ = [
    "EnsureOutcome",
    "EnsureResult",
    "EnsureStep",
    "ReconcilePhase",
    "ReconcileResult",
    "EndpointReconciler",
    "RouteReconciler",
    "WorkloadReconciler",
]
