"""
Watcher - Turns cluster changes into reconciliation requests.

Watches SimpleApp declarations and every kind they own. A change to a
declaration enqueues its own key; a change to an owned object enqueues the
key of its controlling SimpleApp. A periodic resync re-enqueues every
declaration so drift is caught even without events.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from cluster import (
    DEPLOYMENT,
    INGRESS,
    SERVICE,
    SIMPLEAPP,
    ApiError,
    ClusterClient,
    ResourceKind,
    WatchEvent,
)
from declaration import DEFAULT_NAMESPACE, GROUP, KIND, ObjectKey

logger = logging.getLogger(__name__)

WATCHED_KINDS: List[ResourceKind] = [SIMPLEAPP, DEPLOYMENT, SERVICE, INGRESS]

# HTTP 410 Gone: the resourceVersion is too old to resume from
RESOURCE_VERSION_EXPIRED = 410


def owner_key(obj: Dict[str, Any]) -> Optional[ObjectKey]:
    """Key of the SimpleApp controlling an object, if any."""
    metadata = obj.get("metadata", {})
    for ref in metadata.get("ownerReferences") or []:
        if not ref.get("controller"):
            continue
        if ref.get("kind") != KIND:
            continue
        if ref.get("apiVersion", "").split("/")[0] != GROUP:
            continue
        return (metadata.get("namespace") or DEFAULT_NAMESPACE, ref["name"])
    return None


def key_for(kind: ResourceKind, obj: Dict[str, Any]) -> Optional[ObjectKey]:
    """Reconciliation key an object of the given kind maps to."""
    if kind == SIMPLEAPP:
        metadata = obj.get("metadata", {})
        return (metadata.get("namespace") or DEFAULT_NAMESPACE, metadata["name"])
    return owner_key(obj)


class Watcher:
    """List-then-watch loops for SimpleApps and their owned kinds."""

    def __init__(
        self,
        client: ClusterClient,
        enqueue: Callable[[ObjectKey], None],
        namespace: Optional[str] = None,
        resync_interval: int = 300,
        watch_timeout: int = 300,
        retry_delay: float = 5.0,
    ):
        self.client = client
        self.enqueue = enqueue
        self.namespace = namespace
        self.resync_interval = resync_interval
        self.watch_timeout = watch_timeout
        self.retry_delay = retry_delay
        self.running = False
        self.synced: Set[str] = set()
        self._tasks: List[asyncio.Task] = []

    @property
    def has_synced(self) -> bool:
        """True once every watched kind has completed its initial list."""
        return all(kind.kind in self.synced for kind in WATCHED_KINDS)

    async def start(self) -> None:
        """Start one watch loop per kind plus the resync loop."""
        logger.info(
            f"Starting watches in namespace: {self.namespace or '(all namespaces)'}"
        )
        self.running = True
        self._tasks = [
            asyncio.create_task(self._watch_kind(kind)) for kind in WATCHED_KINDS
        ]
        self._tasks.append(asyncio.create_task(self._resync_loop()))

        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            logger.info("Watches cancelled")

    async def stop(self) -> None:
        """Cancel all watch loops."""
        logger.info("Stopping watches")
        self.running = False
        for task in self._tasks:
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    def handle_event(
        self, kind: ResourceKind, event: WatchEvent
    ) -> Optional[ObjectKey]:
        """
        Enqueue the key an event maps to.

        Args:
            kind: The kind being watched
            event: The watch event

        Returns:
            The enqueued key, or None if the event maps to no SimpleApp
        """
        if event.type == "BOOKMARK":
            return None

        key = key_for(kind, event.object)
        if key is not None:
            logger.debug(f"{event.type} {kind.kind} -> reconcile {key[0]}/{key[1]}")
            self.enqueue(key)
        return key

    async def list_and_enqueue(self, kind: ResourceKind) -> str:
        """
        List a kind, enqueue every key found, and mark the kind as synced.

        Returns:
            The collection resourceVersion to start watching from
        """
        items, resource_version = await self.client.list(kind, self.namespace)
        for item in items:
            key = key_for(kind, item)
            if key is not None:
                self.enqueue(key)
        self.synced.add(kind.kind)
        return resource_version

    async def _watch_kind(self, kind: ResourceKind) -> None:
        resource_version: Optional[str] = None

        while self.running:
            try:
                if resource_version is None:
                    resource_version = await self.list_and_enqueue(kind)
                    logger.info(f"Listed {kind.plural} at version {resource_version}")

                async for event in self.client.watch(
                    kind,
                    namespace=self.namespace,
                    resource_version=resource_version,
                    timeout_seconds=self.watch_timeout,
                ):
                    metadata = event.object.get("metadata", {})
                    resource_version = metadata.get("resourceVersion", resource_version)
                    self.handle_event(kind, event)

            except ApiError as e:
                if e.status == RESOURCE_VERSION_EXPIRED:
                    logger.info(f"Watch on {kind.plural} expired, relisting")
                    resource_version = None
                    continue
                logger.error(f"Error watching {kind.plural}: {e}")
                await asyncio.sleep(self.retry_delay)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    f"Unexpected error watching {kind.plural}: {e}", exc_info=True
                )
                await asyncio.sleep(self.retry_delay)

    async def resync(self) -> int:
        """
        Enqueue every SimpleApp.

        Returns:
            Number of declarations enqueued
        """
        items, _ = await self.client.list(SIMPLEAPP, self.namespace)
        for item in items:
            self.enqueue(key_for(SIMPLEAPP, item))
        logger.debug(f"Resync enqueued {len(items)} SimpleApps")
        return len(items)

    async def _resync_loop(self) -> None:
        while self.running:
            await asyncio.sleep(self.resync_interval)
            try:
                await self.resync()
            except ApiError as e:
                logger.error(f"Error during resync: {e}")
