"""Pytest configuration and fixtures."""

import asyncio
import copy
import itertools
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from cluster import ApiError, ClusterClient, NotFoundError, ResourceKind, WatchEvent
from declaration import Declaration

MUTATING_OPERATIONS = ("create", "update", "update_status", "delete")


class FakeCluster(ClusterClient):
    """
    In-memory ClusterClient.

    Stores objects by (kind, namespace, name), assigns uids and
    resourceVersions, records every call, and raises injected failures.
    """

    def __init__(self):
        self.objects: Dict[Tuple[str, str, str], Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str, str, str]] = []
        self.failures: Dict[Tuple[str, str], Exception] = {}
        self.watch_scripts: Dict[str, List[Any]] = {}
        self.on_watch_exhausted: Optional[Callable[[], None]] = None
        self._versions = itertools.count(1)
        self._uids = itertools.count(1)

    # Test helpers

    def fail(self, operation: str, kind: ResourceKind, error: Exception) -> None:
        """Make every call of an operation on a kind raise an error."""
        self.failures[(operation, kind.kind)] = error

    def clear_failures(self) -> None:
        self.failures.clear()

    def seed(self, kind: ResourceKind, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Store an object directly, bypassing call recording."""
        obj = copy.deepcopy(obj)
        metadata = obj.setdefault("metadata", {})
        metadata.setdefault("namespace", "default")
        metadata.setdefault("uid", f"uid-{next(self._uids)}")
        metadata["resourceVersion"] = str(next(self._versions))
        self.objects[(kind.kind, metadata["namespace"], metadata["name"])] = obj
        return copy.deepcopy(obj)

    def stored(
        self, kind: ResourceKind, namespace: str, name: str
    ) -> Optional[Dict[str, Any]]:
        return self.objects.get((kind.kind, namespace, name))

    def calls_for(self, operation: str, kind: Optional[ResourceKind] = None):
        return [
            call
            for call in self.calls
            if call[0] == operation and (kind is None or call[1] == kind.kind)
        ]

    @property
    def mutations(self) -> int:
        return sum(1 for call in self.calls if call[0] in MUTATING_OPERATIONS)

    def _record(self, operation: str, kind: ResourceKind, namespace, name) -> None:
        self.calls.append((operation, kind.kind, namespace or "", name or ""))
        error = self.failures.get((operation, kind.kind))
        if error is not None:
            raise error

    # ClusterClient

    async def get(self, kind, namespace, name):
        self._record("get", kind, namespace, name)
        obj = self.objects.get((kind.kind, namespace, name))
        if obj is None:
            raise NotFoundError(message=f"{kind.plural} {name!r} not found")
        return copy.deepcopy(obj)

    async def create(self, kind, obj):
        metadata = obj["metadata"]
        namespace = metadata.get("namespace", "default")
        self._record("create", kind, namespace, metadata["name"])
        if (kind.kind, namespace, metadata["name"]) in self.objects:
            raise ApiError(409, "AlreadyExists", f"{metadata['name']} exists")
        return self.seed(kind, obj)

    async def update(self, kind, obj):
        metadata = obj["metadata"]
        key = (kind.kind, metadata.get("namespace", "default"), metadata["name"])
        self._record("update", kind, key[1], key[2])
        live = self.objects.get(key)
        if live is None:
            raise NotFoundError()
        sent_version = metadata.get("resourceVersion")
        if sent_version and sent_version != live["metadata"]["resourceVersion"]:
            raise ApiError(409, "Conflict", "the object has been modified")
        obj = copy.deepcopy(obj)
        obj["metadata"]["resourceVersion"] = str(next(self._versions))
        self.objects[key] = obj
        return copy.deepcopy(obj)

    async def update_status(self, kind, obj):
        metadata = obj["metadata"]
        key = (kind.kind, metadata.get("namespace", "default"), metadata["name"])
        self._record("update_status", kind, key[1], key[2])
        live = self.objects.get(key)
        if live is None:
            raise NotFoundError()
        live["status"] = copy.deepcopy(obj.get("status"))
        live["metadata"]["resourceVersion"] = str(next(self._versions))
        return copy.deepcopy(live)

    async def delete(self, kind, namespace, name):
        self._record("delete", kind, namespace, name)
        if self.objects.pop((kind.kind, namespace, name), None) is None:
            raise NotFoundError()

    async def list(self, kind, namespace=None):
        self._record("list", kind, namespace, None)
        items = [
            copy.deepcopy(obj)
            for (kind_name, obj_namespace, _), obj in self.objects.items()
            if kind_name == kind.kind and namespace in (None, obj_namespace)
        ]
        return items, str(next(self._versions))

    async def watch(
        self, kind, namespace=None, resource_version=None, timeout_seconds=300
    ):
        self._record("watch", kind, namespace, resource_version)
        script = self.watch_scripts.get(kind.kind) or []
        if not script:
            if self.on_watch_exhausted is not None:
                self.on_watch_exhausted()
                return
            # Idle stream until the server-side timeout
            await asyncio.sleep(timeout_seconds)
            return
        for item in script.pop(0):
            if isinstance(item, Exception):
                raise item
            yield item


def make_declaration_object(
    name: str = "web",
    namespace: str = "default",
    image: str = "nginx:1.25",
    replicas: int = 2,
    container_port: int = 8080,
    service_port: int = 80,
    status: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """SimpleApp object in the shape served by the API server."""
    obj: Dict[str, Any] = {
        "apiVersion": "apps.myapp.io/v1",
        "kind": "SimpleApp",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": f"{name}-uid",
            "resourceVersion": "1",
        },
        "spec": {
            "image": image,
            "replicas": replicas,
            "containerPort": container_port,
            "servicePort": service_port,
        },
    }
    if status is not None:
        obj["status"] = status
    return obj


def watch_event(event_type: str, obj: Dict[str, Any]) -> WatchEvent:
    return WatchEvent(type=event_type, object=obj)


@pytest.fixture
def fake_cluster():
    """Create an empty in-memory cluster."""
    return FakeCluster()


@pytest.fixture
def declaration_object():
    """Sample SimpleApp object."""
    return make_declaration_object()


@pytest.fixture
def declaration(declaration_object):
    """Sample parsed declaration."""
    return Declaration.from_resource(declaration_object)
