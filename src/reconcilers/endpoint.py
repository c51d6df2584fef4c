"""Endpoint ensure step: the ClusterIP Service in front of the workload."""

from typing import Any, Dict, List

from cluster import SERVICE, ResourceKind
from declaration import Declaration
from desired import desired_endpoint
from reconcilers.base import EnsureResult, EnsureStep, ReconcilePhase


class EndpointReconciler(EnsureStep):
    """Keeps the Service's port mapping in line with the declaration."""

    phase = ReconcilePhase.ENSURE_ENDPOINT

    @property
    def kind(self) -> ResourceKind:
        return SERVICE

    def object_name(self, declaration: Declaration) -> str:
        return declaration.name

    def diff(self, live: Dict[str, Any], desired: Dict[str, Any]) -> List[str]:
        live_ports = live.get("spec", {}).get("ports") or [{}]
        want = desired["spec"]["ports"][0]
        changed = []
        if live_ports[0].get("port") != want["port"]:
            changed.append("port")
        if live_ports[0].get("targetPort") != want["targetPort"]:
            changed.append("targetPort")
        return changed

    def apply_diff(self, live: Dict[str, Any], desired: Dict[str, Any]) -> None:
        live.setdefault("spec", {})["ports"] = desired["spec"]["ports"]

    async def ensure(self, declaration: Declaration) -> EnsureResult:
        return await self.converge(declaration, desired_endpoint(declaration))
