"""
SimpleApp Controller - Reconciliation of SimpleApp declarations.

Similar to Kubernetes controllers, converges the cluster toward each
declaration: one Deployment, one Service, and (when an ingress class is
configured) one Ingress per SimpleApp, with observed readiness mirrored back
onto the declaration's status.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from pydantic import ValidationError

from cluster import SIMPLEAPP, ApiError, ClusterClient, NotFoundError
from config import ControllerConfig
from declaration import Declaration, ObjectKey
from reconcilers import (
    EndpointReconciler,
    EnsureResult,
    EnsureStep,
    ReconcilePhase,
    ReconcileResult,
    RouteReconciler,
    WorkloadReconciler,
)
from route_class import EnvRouteClassProvider, RouteClassProvider
from workqueue import ShutDown, WorkQueue

logger = logging.getLogger(__name__)


def ready_replicas(workload: Optional[Dict[str, Any]]) -> int:
    """Ready replica count reported by a Deployment, 0 when not reported."""
    if not workload:
        return 0
    return (workload.get("status") or {}).get("readyReplicas") or 0


class SimpleAppReconciler:
    """
    Runs one reconciliation pass for a SimpleApp key.

    Phases: Fetch -> EnsureWorkload -> EnsureEndpoint -> EnsureRoute ->
    ReconcileStatus -> Done. The first error aborts the pass; objects created
    before it are left in place and the next pass picks up from there.
    """

    def __init__(
        self,
        client: ClusterClient,
        route_class_provider: Optional[RouteClassProvider] = None,
    ):
        self.client = client
        self.route_class_provider = route_class_provider or EnvRouteClassProvider()

        self.workload = WorkloadReconciler(client)
        self.endpoint = EndpointReconciler(client)
        self.route = RouteReconciler(client, self.route_class_provider)

        # Fixed execution order
        self.steps: List[EnsureStep] = [self.workload, self.endpoint, self.route]

    async def ensure_workload(self, declaration: Declaration) -> EnsureResult:
        return await self.workload.ensure(declaration)

    async def ensure_endpoint(self, declaration: Declaration) -> EnsureResult:
        return await self.endpoint.ensure(declaration)

    async def ensure_route(self, declaration: Declaration) -> EnsureResult:
        return await self.route.ensure(declaration)

    async def fetch(self, key: ObjectKey) -> Optional[Declaration]:
        """Read the declaration for a key, or None if it has been deleted."""
        namespace, name = key
        try:
            obj = await self.client.get(SIMPLEAPP, namespace, name)
        except NotFoundError:
            return None
        return Declaration.from_resource(obj)

    async def reconcile_status(
        self, declaration: Declaration, workload: Optional[Dict[str, Any]]
    ) -> bool:
        """
        Mirror the workload's ready replica count onto the declaration.

        Returns:
            True if the status subresource was written
        """
        observed = ready_replicas(workload)
        if declaration.status.ready_replicas == observed:
            return False

        await self.client.update_status(
            SIMPLEAPP, declaration.with_ready_replicas(observed)
        )
        logger.info(
            f"Updated status of SimpleApp {declaration.namespace}/{declaration.name}: "
            f"readyReplicas {declaration.status.ready_replicas} -> {observed}"
        )
        return True

    async def reconcile(self, key: ObjectKey) -> ReconcileResult:
        """
        Reconcile a single SimpleApp.

        API and schema failures do not raise; they end the pass with
        ``success=False`` and the phase that failed, and the caller requeues.

        Args:
            key: (namespace, name) of the declaration

        Returns:
            ReconcileResult for the pass
        """
        namespace, name = key
        result = ReconcileResult()

        try:
            result.phase = ReconcilePhase.FETCH
            declaration = await self.fetch(key)
            if declaration is None:
                # Deleted; owned objects are garbage collected by the cluster
                logger.debug(f"SimpleApp {namespace}/{name} not found, nothing to do")
                result.phase = ReconcilePhase.DONE
                result.success = True
                result.message = "SimpleApp not found"
                return result

            ensured: Dict[ReconcilePhase, EnsureResult] = {}
            for step in self.steps:
                result.phase = step.phase
                ensured[step.phase] = await step.ensure(declaration)
                result.outcomes[step.kind.kind] = ensured[step.phase].outcome

            result.phase = ReconcilePhase.RECONCILE_STATUS
            workload = ensured[ReconcilePhase.ENSURE_WORKLOAD].object
            result.status_updated = await self.reconcile_status(declaration, workload)

            result.phase = ReconcilePhase.DONE
            result.success = True
            result.message = "Reconciliation successful"
            logger.info(
                f"Successfully reconciled SimpleApp {namespace}/{name} "
                f"(image: {declaration.spec.image})"
            )

        except (ApiError, ValidationError) as e:
            result.failed_phase = result.phase
            result.phase = ReconcilePhase.FAILED
            result.success = False
            result.message = str(e)
            logger.error(
                f"Failed to reconcile SimpleApp {namespace}/{name} "
                f"during {result.failed_phase.value}: {e}"
            )

        return result


@dataclass
class ReconciliationRecord:
    """One entry of the controller's reconciliation history."""

    namespace: str
    name: str
    success: bool
    phase: str
    message: str
    duration_seconds: float
    trigger: str = "event"
    retry_count: int = 0
    outcomes: Dict[str, str] = field(default_factory=dict)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "namespace": self.namespace,
            "name": self.name,
            "success": self.success,
            "phase": self.phase,
            "message": self.message,
            "duration_seconds": self.duration_seconds,
            "trigger": self.trigger,
            "retry_count": self.retry_count,
            "outcomes": dict(self.outcomes),
            "timestamp": self.timestamp,
        }


class Controller:
    """
    Worker pool draining the work queue.

    Each worker takes a key, runs a reconciliation pass, and either forgets
    the key's failure count or requeues it with backoff. The queue guarantees
    at most one in-flight pass per key.
    """

    def __init__(
        self,
        client: ClusterClient,
        reconciler: Optional[SimpleAppReconciler] = None,
        config: Optional[ControllerConfig] = None,
        queue: Optional[WorkQueue] = None,
    ):
        self.client = client
        self.config = config or ControllerConfig()
        self.reconciler = reconciler or SimpleAppReconciler(client)
        self.queue = queue or WorkQueue(
            base_delay=self.config.backoff_base_delay,
            max_delay=self.config.backoff_max_delay,
            jitter_factor=self.config.backoff_jitter_factor,
        )
        self.max_concurrent_reconciles = self.config.max_concurrent_reconciles
        self.running = False
        self.history: Deque[ReconciliationRecord] = deque(
            maxlen=self.config.history_size
        )
        self._workers: List[asyncio.Task] = []

    def enqueue(self, key: ObjectKey) -> None:
        """Request a reconciliation pass for a key."""
        self.queue.add(key)

    async def start(self):
        """Start the workers and wait for them to finish."""
        logger.info(
            f"Starting SimpleApp controller with "
            f"{self.max_concurrent_reconciles} workers"
        )
        self.running = True
        self._workers = [
            asyncio.create_task(self._worker(i))
            for i in range(self.max_concurrent_reconciles)
        ]

        try:
            await asyncio.gather(*self._workers)
        except Exception as e:
            logger.error(f"Controller error: {e}")
            raise

    async def stop(self):
        """Stop accepting work and let the workers drain."""
        logger.info("Stopping SimpleApp controller")
        self.running = False
        self.queue.shutdown()

        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

    async def _worker(self, worker_id: int):
        """Process keys until the queue shuts down."""
        while self.running:
            try:
                key = await self.queue.get()
            except ShutDown:
                break

            try:
                await self.process(key)
            finally:
                self.queue.done(key)

        logger.debug(f"Worker {worker_id} exiting")

    def _determine_trigger_reason(self, key: ObjectKey) -> str:
        """Why a key is being reconciled: a backoff retry or a watch/resync event."""
        if self.queue.failures(key) > 0:
            return "retry"
        return "event"

    async def process(self, key: ObjectKey) -> ReconcileResult:
        """
        Run one pass for a key and schedule its retry on failure.

        Args:
            key: (namespace, name) of the declaration

        Returns:
            The ReconcileResult of the pass
        """
        namespace, name = key
        start_time = time.monotonic()
        retry_count = self.queue.failures(key)
        trigger = self._determine_trigger_reason(key)

        try:
            result = await self.reconciler.reconcile(key)
        except Exception as e:
            logger.error(f"Error reconciling {namespace}/{name}: {e}", exc_info=True)
            result = ReconcileResult(
                success=False,
                phase=ReconcilePhase.FAILED,
                message=f"Reconciliation error: {str(e)}",
            )

        if result.success:
            self.queue.forget(key)
        else:
            delay = self.queue.add_rate_limited(key)
            logger.info(f"Requeued {namespace}/{name} in {delay:.1f}s")

        self.history.append(
            ReconciliationRecord(
                namespace=namespace,
                name=name,
                success=result.success,
                phase=(result.failed_phase or result.phase).value,
                message=result.message,
                duration_seconds=time.monotonic() - start_time,
                trigger=trigger,
                retry_count=retry_count,
                outcomes={k: v.value for k, v in result.outcomes.items()},
            )
        )
        return result

    def recent_reconciliations(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Most recent reconciliation records, newest first."""
        records = list(self.history)[-limit:] if limit > 0 else []
        return [record.to_dict() for record in reversed(records)]
