"""
Cluster Client - Access to the Kubernetes API server.

Defines the narrow client interface the reconciler depends on and an
aiohttp-backed implementation speaking the Kubernetes REST API directly.
"""

import asyncio
import json
import logging
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import aiohttp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceKind:
    """API coordinates of a resource kind."""

    api_version: str
    kind: str
    plural: str

    def path(
        self,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
        subresource: Optional[str] = None,
    ) -> str:
        """
        Build the REST path for this kind.

        Args:
            namespace: Namespace, or None for a cluster-wide collection
            name: Object name, or None for the collection
            subresource: Optional subresource (e.g. 'status')

        Returns:
            The request path, e.g. /apis/apps/v1/namespaces/default/deployments/web
        """
        if "/" in self.api_version:
            path = f"/apis/{self.api_version}"
        else:
            path = f"/api/{self.api_version}"
        if namespace:
            path += f"/namespaces/{namespace}"
        path += f"/{self.plural}"
        if name:
            path += f"/{name}"
            if subresource:
                path += f"/{subresource}"
        return path


SIMPLEAPP = ResourceKind("apps.myapp.io/v1", "SimpleApp", "simpleapps")
DEPLOYMENT = ResourceKind("apps/v1", "Deployment", "deployments")
SERVICE = ResourceKind("v1", "Service", "services")
INGRESS = ResourceKind("networking.k8s.io/v1", "Ingress", "ingresses")


class ApiError(Exception):
    """Raised when a request to the API server fails."""

    def __init__(self, status: Optional[int], reason: str = "", message: str = ""):
        self.status = status
        self.reason = reason
        self.message = message
        super().__init__(f"API error {status} {reason}: {message}".strip())


class NotFoundError(ApiError):
    """The requested object does not exist."""

    def __init__(self, reason: str = "NotFound", message: str = ""):
        super().__init__(404, reason, message)


@dataclass
class WatchEvent:
    """A single event from a watch stream."""

    type: str  # ADDED, MODIFIED, DELETED, BOOKMARK
    object: Dict[str, Any]


class ClusterClient(ABC):
    """Operations the reconciler needs from the orchestrating API."""

    @abstractmethod
    async def get(
        self, kind: ResourceKind, namespace: str, name: str
    ) -> Dict[str, Any]:
        """
        Read an object.

        Raises:
            NotFoundError: If the object does not exist
            ApiError: On any other failure
        """
        pass

    @abstractmethod
    async def create(self, kind: ResourceKind, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Create an object in the namespace named by its metadata."""
        pass

    @abstractmethod
    async def update(self, kind: ResourceKind, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Replace an object; the API server rejects stale resourceVersions."""
        pass

    @abstractmethod
    async def update_status(
        self, kind: ResourceKind, obj: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Replace the status subresource of an object."""
        pass

    @abstractmethod
    async def delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        """Delete an object."""
        pass

    @abstractmethod
    async def list(
        self, kind: ResourceKind, namespace: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], str]:
        """
        List objects of a kind.

        Returns:
            Tuple of (items, collection resourceVersion)
        """
        pass

    @abstractmethod
    def watch(
        self,
        kind: ResourceKind,
        namespace: Optional[str] = None,
        resource_version: Optional[str] = None,
        timeout_seconds: int = 300,
    ) -> AsyncIterator[WatchEvent]:
        """
        Stream changes to objects of a kind from a resourceVersion.

        Raises:
            ApiError: With status 410 when the resourceVersion has expired
        """
        pass


class KubernetesClient(ClusterClient):
    """ClusterClient talking to the Kubernetes REST API over aiohttp."""

    def __init__(
        self,
        api_url: str,
        token: Optional[str] = None,
        ca_file: Optional[str] = None,
        verify_ssl: bool = True,
        request_timeout: float = 30.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.ca_file = ca_file
        self.verify_ssl = verify_ssl
        self.request_timeout = request_timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        """Open the HTTP session used for all requests."""
        ssl_option: Any
        if not self.verify_ssl:
            ssl_option = False
        elif self.ca_file:
            ssl_option = ssl.create_default_context(cafile=self.ca_file)
        else:
            ssl_option = None

        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        self.session = aiohttp.ClientSession(
            headers=headers,
            connector=aiohttp.TCPConnector(ssl=ssl_option),
            timeout=aiohttp.ClientTimeout(total=self.request_timeout),
        )
        logger.info(f"Connected to Kubernetes API at {self.api_url}")

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            logger.info("Closed Kubernetes API session")

    def _ensure_connected(self) -> aiohttp.ClientSession:
        if self.session is None:
            raise RuntimeError(
                "Kubernetes client not connected. "
                "Call connect() before making requests."
            )
        return self.session

    @staticmethod
    async def _error_from_response(resp: aiohttp.ClientResponse) -> ApiError:
        """Turn an error response (usually a v1 Status object) into an ApiError."""
        text = await resp.text()
        reason = resp.reason or ""
        message = text
        try:
            body = json.loads(text)
            reason = body.get("reason", reason)
            message = body.get("message", text)
        except ValueError:
            pass

        if resp.status == 404:
            return NotFoundError(reason=reason, message=message)
        return ApiError(resp.status, reason, message)

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        session = self._ensure_connected()
        url = f"{self.api_url}{path}"

        try:
            async with session.request(method, url, json=body, params=params) as resp:
                if resp.status >= 400:
                    raise await self._error_from_response(resp)
                return await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise ApiError(None, "ClientError", f"{method} {path}: {e}") from e
        except asyncio.TimeoutError as e:
            raise ApiError(None, "Timeout", f"{method} {path} timed out") from e

    async def get(
        self, kind: ResourceKind, namespace: str, name: str
    ) -> Dict[str, Any]:
        return await self._request("GET", kind.path(namespace, name))

    async def create(self, kind: ResourceKind, obj: Dict[str, Any]) -> Dict[str, Any]:
        namespace = obj["metadata"].get("namespace")
        return await self._request("POST", kind.path(namespace), body=obj)

    async def update(self, kind: ResourceKind, obj: Dict[str, Any]) -> Dict[str, Any]:
        metadata = obj["metadata"]
        path = kind.path(metadata.get("namespace"), metadata["name"])
        return await self._request("PUT", path, body=obj)

    async def update_status(
        self, kind: ResourceKind, obj: Dict[str, Any]
    ) -> Dict[str, Any]:
        metadata = obj["metadata"]
        path = kind.path(metadata.get("namespace"), metadata["name"], "status")
        return await self._request("PUT", path, body=obj)

    async def delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        await self._request("DELETE", kind.path(namespace, name))

    async def list(
        self, kind: ResourceKind, namespace: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], str]:
        result = await self._request("GET", kind.path(namespace))
        items = result.get("items") or []
        resource_version = result.get("metadata", {}).get("resourceVersion", "")
        return items, resource_version

    async def watch(
        self,
        kind: ResourceKind,
        namespace: Optional[str] = None,
        resource_version: Optional[str] = None,
        timeout_seconds: int = 300,
    ) -> AsyncIterator[WatchEvent]:
        session = self._ensure_connected()
        url = f"{self.api_url}{kind.path(namespace)}"
        params = {
            "watch": "1",
            "allowWatchBookmarks": "true",
            "timeoutSeconds": str(timeout_seconds),
        }
        if resource_version:
            params["resourceVersion"] = resource_version

        # The server closes the stream after timeout_seconds
        timeout = aiohttp.ClientTimeout(total=None, sock_read=timeout_seconds + 30)

        try:
            async with session.get(url, params=params, timeout=timeout) as resp:
                if resp.status >= 400:
                    raise await self._error_from_response(resp)

                buffer = b""
                async for chunk in resp.content.iter_any():
                    buffer += chunk
                    while b"\n" in buffer:
                        line, buffer = buffer.split(b"\n", 1)
                        if not line.strip():
                            continue
                        event = json.loads(line)
                        if event.get("type") == "ERROR":
                            status = event.get("object", {})
                            raise ApiError(
                                status.get("code"),
                                status.get("reason", ""),
                                status.get("message", ""),
                            )
                        yield WatchEvent(type=event["type"], object=event["object"])
        except aiohttp.ClientError as e:
            raise ApiError(None, "ClientError", f"watch {kind.plural}: {e}") from e
        except asyncio.TimeoutError as e:
            raise ApiError(None, "Timeout", f"watch {kind.plural} timed out") from e
