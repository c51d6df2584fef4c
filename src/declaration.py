"""
Application Declaration - The SimpleApp custom resource.

Parses the wire shape served by the API server into typed models and renders
it back. Spec defaults mirror the CRD schema so a declaration read from a
cluster without defaulting still carries a complete spec.
"""

from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

GROUP = "apps.myapp.io"
VERSION = "v1"
API_VERSION = f"{GROUP}/{VERSION}"
KIND = "SimpleApp"
PLURAL = "simpleapps"

DEFAULT_NAMESPACE = "default"

# (namespace, name) of a declaration
ObjectKey = Tuple[str, str]


class DeclarationSpec(BaseModel):
    """Desired shape of the application."""

    model_config = ConfigDict(populate_by_name=True)

    image: str = Field(..., min_length=1, description="Container image reference")
    replicas: int = Field(1, ge=1, description="Desired workload width")
    container_port: int = Field(
        ...,
        alias="containerPort",
        ge=1,
        le=65535,
        description="Port the app listens on",
    )
    service_port: int = Field(
        80, alias="servicePort", description="Port exposed by the network endpoint"
    )


class DeclarationStatus(BaseModel):
    """Observed state, written only by the reconciler."""

    model_config = ConfigDict(populate_by_name=True)

    ready_replicas: int = Field(0, alias="readyReplicas")
    service_status: Optional[str] = Field(None, alias="serviceStatus")


class Declaration(BaseModel):
    """A SimpleApp resource as read from the API server."""

    name: str
    namespace: str = DEFAULT_NAMESPACE
    uid: str = ""
    resource_version: Optional[str] = None
    spec: DeclarationSpec
    status: DeclarationStatus = Field(default_factory=DeclarationStatus)

    # Raw object as served, kept so status writes round-trip unknown fields
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False, exclude=True)

    @property
    def key(self) -> ObjectKey:
        return (self.namespace, self.name)

    @classmethod
    def from_resource(cls, obj: Dict[str, Any]) -> "Declaration":
        """
        Build a Declaration from an API object.

        Args:
            obj: The SimpleApp object as returned by the API server.

        Returns:
            The parsed Declaration.

        Raises:
            pydantic.ValidationError: If the spec does not satisfy the schema.
        """
        metadata = obj.get("metadata", {})
        return cls(
            name=metadata["name"],
            namespace=metadata.get("namespace") or DEFAULT_NAMESPACE,
            uid=metadata.get("uid", ""),
            resource_version=metadata.get("resourceVersion"),
            spec=DeclarationSpec.model_validate(obj.get("spec") or {}),
            status=DeclarationStatus.model_validate(obj.get("status") or {}),
            raw=obj,
        )

    def with_ready_replicas(self, ready_replicas: int) -> Dict[str, Any]:
        """
        Render the object for a status subresource write.

        Only ``readyReplicas`` changes; ``serviceStatus`` and any other status
        fields already present are carried through untouched.
        """
        obj = dict(self.raw) if self.raw else to_manifest(self)
        status = dict(obj.get("status") or {})
        status["readyReplicas"] = ready_replicas
        obj["status"] = status
        return obj


def render_declaration(
    name: str,
    image: str,
    container_port: int,
    replicas: int = 1,
    service_port: int = 80,
    namespace: str = DEFAULT_NAMESPACE,
) -> Dict[str, Any]:
    """Render a SimpleApp manifest from its individual fields."""
    return {
        "apiVersion": API_VERSION,
        "kind": KIND,
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "image": image,
            "replicas": replicas,
            "containerPort": container_port,
            "servicePort": service_port,
        },
    }


def to_manifest(declaration: Declaration) -> Dict[str, Any]:
    """Render a Declaration back into its wire form."""
    metadata: Dict[str, Any] = {
        "name": declaration.name,
        "namespace": declaration.namespace,
    }
    if declaration.uid:
        metadata["uid"] = declaration.uid
    if declaration.resource_version:
        metadata["resourceVersion"] = declaration.resource_version
    return {
        "apiVersion": API_VERSION,
        "kind": KIND,
        "metadata": metadata,
        "spec": declaration.spec.model_dump(by_alias=True),
        "status": declaration.status.model_dump(by_alias=True, exclude_none=True),
    }
