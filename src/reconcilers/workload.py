"""Workload ensure step: the Deployment running a SimpleApp's image."""

from typing import Any, Dict, List

from cluster import DEPLOYMENT, ResourceKind
from declaration import Declaration
from desired import desired_workload
from reconcilers.base import EnsureResult, EnsureStep, ReconcilePhase


def _container(obj: Dict[str, Any]) -> Dict[str, Any]:
    pod_spec = obj.get("spec", {}).get("template", {}).get("spec", {})
    containers = pod_spec.get("containers") or [{}]
    return containers[0]


class WorkloadReconciler(EnsureStep):
    """
    Keeps replicas and the container image in line with the declaration.

    Selector, labels, and everything else are written once at creation and
    left alone afterwards.
    """

    phase = ReconcilePhase.ENSURE_WORKLOAD

    @property
    def kind(self) -> ResourceKind:
        return DEPLOYMENT

    def object_name(self, declaration: Declaration) -> str:
        return declaration.name

    def diff(self, live: Dict[str, Any], desired: Dict[str, Any]) -> List[str]:
        changed = []
        if live.get("spec", {}).get("replicas") != desired["spec"]["replicas"]:
            changed.append("replicas")
        if _container(live).get("image") != _container(desired)["image"]:
            changed.append("image")
        return changed

    def apply_diff(self, live: Dict[str, Any], desired: Dict[str, Any]) -> None:
        live["spec"]["replicas"] = desired["spec"]["replicas"]
        containers = live["spec"]["template"]["spec"]["containers"]
        containers[0]["image"] = _container(desired)["image"]

    async def ensure(self, declaration: Declaration) -> EnsureResult:
        return await self.converge(declaration, desired_workload(declaration))
