"""
Ensure Step Base - Shared create-or-update logic for owned objects.

Each step owns one dependent kind of a SimpleApp. It renders the desired
object, reads the live one, and makes the smallest write that converges the
fields it is responsible for. Steps never retry; API errors propagate to the
caller, which requeues the whole pass.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from cluster import ClusterClient, NotFoundError, ResourceKind
from declaration import Declaration

logger = logging.getLogger(__name__)


class EnsureOutcome(Enum):
    """What an ensure step did to its object."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


@dataclass
class EnsureResult:
    """Result from an ensure step."""

    outcome: EnsureOutcome
    object: Optional[Dict[str, Any]] = None
    changed_fields: List[str] = field(default_factory=list)

    @property
    def mutated(self) -> bool:
        return self.outcome in (EnsureOutcome.CREATED, EnsureOutcome.UPDATED)


class ReconcilePhase(Enum):
    """Phases of a reconciliation pass, in execution order."""

    FETCH = "fetch"
    ENSURE_WORKLOAD = "ensure_workload"
    ENSURE_ENDPOINT = "ensure_endpoint"
    ENSURE_ROUTE = "ensure_route"
    RECONCILE_STATUS = "reconcile_status"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ReconcileResult:
    """Result from a single reconciliation pass."""

    success: bool = False
    phase: ReconcilePhase = ReconcilePhase.FETCH
    message: str = ""
    failed_phase: Optional[ReconcilePhase] = None
    outcomes: Dict[str, EnsureOutcome] = field(default_factory=dict)
    status_updated: bool = False


class EnsureStep(ABC):
    """
    Abstract base class for the per-kind ensure operations.

    Subclasses describe their kind, how to render the desired object, which
    fields they compare, and how to copy those fields onto the live object.
    ``ensure`` ties those together.
    """

    #: Phase this step runs in
    phase: ReconcilePhase

    def __init__(self, client: ClusterClient):
        self.client = client

    @property
    @abstractmethod
    def kind(self) -> ResourceKind:
        """Kind of the object this step manages."""
        pass

    @abstractmethod
    def object_name(self, declaration: Declaration) -> str:
        """Name of the managed object for a declaration."""
        pass

    @abstractmethod
    def diff(self, live: Dict[str, Any], desired: Dict[str, Any]) -> List[str]:
        """
        Compare the fields this step owns.

        Args:
            live: The object as read from the cluster
            desired: The rendered desired object

        Returns:
            Names of fields that differ; empty when converged
        """
        pass

    @abstractmethod
    def apply_diff(self, live: Dict[str, Any], desired: Dict[str, Any]) -> None:
        """Copy the owned fields from desired onto live, in place."""
        pass

    async def get_live(self, declaration: Declaration) -> Optional[Dict[str, Any]]:
        """Read the managed object, or None when it does not exist."""
        try:
            return await self.client.get(
                self.kind, declaration.namespace, self.object_name(declaration)
            )
        except NotFoundError:
            return None

    async def converge(
        self, declaration: Declaration, desired: Dict[str, Any]
    ) -> EnsureResult:
        """Create the object if missing, otherwise update only drifted fields."""
        name = f"{declaration.namespace}/{self.object_name(declaration)}"
        live = await self.get_live(declaration)

        if live is None:
            created = await self.client.create(self.kind, desired)
            logger.info(f"Created {self.kind.kind} {name}")
            return EnsureResult(EnsureOutcome.CREATED, created or desired)

        changed = self.diff(live, desired)
        if not changed:
            return EnsureResult(EnsureOutcome.UNCHANGED, live)

        self.apply_diff(live, desired)
        updated = await self.client.update(self.kind, live)
        logger.info(f"Updated {self.kind.kind} {name}: {', '.join(changed)}")
        return EnsureResult(EnsureOutcome.UPDATED, updated or live, changed)

    @abstractmethod
    async def ensure(self, declaration: Declaration) -> EnsureResult:
        """
        Converge the managed object for a declaration.

        Args:
            declaration: The owning SimpleApp

        Returns:
            EnsureResult describing what was done and the observed object

        Raises:
            ApiError: On any API failure other than not-found on read
        """
        pass
