"""Route ensure step: the Ingress exposing a SimpleApp, when a class is set."""

import logging
from typing import Any, Dict, List

from cluster import INGRESS, ResourceKind
from declaration import Declaration
from desired import desired_route, route_name
from reconcilers.base import EnsureOutcome, EnsureResult, EnsureStep, ReconcilePhase
from route_class import RouteClassProvider, resolve_route_class

logger = logging.getLogger(__name__)


class RouteReconciler(EnsureStep):
    """
    Manages the Ingress for a declaration.

    Host and path rules are fixed at creation. Only the ingress class is
    tracked afterwards. With no class configured the step does nothing,
    including leaving any route created earlier in place.
    """

    phase = ReconcilePhase.ENSURE_ROUTE

    def __init__(self, client, route_class_provider: RouteClassProvider):
        super().__init__(client)
        self.route_class_provider = route_class_provider

    @property
    def kind(self) -> ResourceKind:
        return INGRESS

    def object_name(self, declaration: Declaration) -> str:
        return route_name(declaration)

    def diff(self, live: Dict[str, Any], desired: Dict[str, Any]) -> List[str]:
        live_class = live.get("spec", {}).get("ingressClassName")
        if live_class != desired["spec"]["ingressClassName"]:
            return ["ingressClassName"]
        return []

    def apply_diff(self, live: Dict[str, Any], desired: Dict[str, Any]) -> None:
        live.setdefault("spec", {})["ingressClassName"] = desired["spec"][
            "ingressClassName"
        ]

    async def ensure(self, declaration: Declaration) -> EnsureResult:
        route_class = resolve_route_class(self.route_class_provider)
        if route_class is None:
            logger.debug(
                f"No route class configured, skipping route for "
                f"{declaration.namespace}/{declaration.name}"
            )
            return EnsureResult(EnsureOutcome.SKIPPED)

        return await self.converge(declaration, desired_route(declaration, route_class))
