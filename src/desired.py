"""
Desired-State Generator - Target shapes of the objects a SimpleApp owns.

Pure functions: no I/O, and the same declaration always renders the same
objects, so diffs against live state are stable across passes.
"""

from typing import Any, Dict, List

from declaration import API_VERSION, KIND, Declaration

CONTAINER_NAME = "app"
ROUTE_SUFFIX = "-ingress"
ROUTE_HOST_SUFFIX = ".local"
LEGACY_ROUTE_CLASS_ANNOTATION = "kubernetes.io/ingress.class"


def selector_labels(declaration: Declaration) -> Dict[str, str]:
    """Labels shared by the workload's pods and the endpoint's selector."""
    return {"app": declaration.name}


def route_name(declaration: Declaration) -> str:
    return f"{declaration.name}{ROUTE_SUFFIX}"


def route_host(declaration: Declaration) -> str:
    return f"{declaration.name}{ROUTE_HOST_SUFFIX}"


def owner_reference(declaration: Declaration) -> Dict[str, Any]:
    """
    Back-reference from a dependent object to its owning declaration.

    The platform's garbage collector deletes every object carrying this
    reference once the declaration is gone.
    """
    return {
        "apiVersion": API_VERSION,
        "kind": KIND,
        "name": declaration.name,
        "uid": declaration.uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }


def _metadata(declaration: Declaration, name: str) -> Dict[str, Any]:
    return {
        "name": name,
        "namespace": declaration.namespace,
        "ownerReferences": [owner_reference(declaration)],
    }


def desired_workload(declaration: Declaration) -> Dict[str, Any]:
    """Deployment running the declared image."""
    spec = declaration.spec
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(declaration, declaration.name),
        "spec": {
            "replicas": spec.replicas,
            "selector": {"matchLabels": selector_labels(declaration)},
            "template": {
                "metadata": {"labels": selector_labels(declaration)},
                "spec": {
                    "containers": [
                        {
                            "name": CONTAINER_NAME,
                            "image": spec.image,
                            "imagePullPolicy": "IfNotPresent",
                            "ports": [{"containerPort": spec.container_port}],
                        }
                    ]
                },
            },
        },
    }


def desired_endpoint_ports(declaration: Declaration) -> List[Dict[str, Any]]:
    return [
        {
            "port": declaration.spec.service_port,
            "targetPort": declaration.spec.container_port,
        }
    ]


def desired_endpoint(declaration: Declaration) -> Dict[str, Any]:
    """ClusterIP Service forwarding servicePort to containerPort."""
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(declaration, declaration.name),
        "spec": {
            "type": "ClusterIP",
            "selector": selector_labels(declaration),
            "ports": desired_endpoint_ports(declaration),
        },
    }


def desired_route(declaration: Declaration, route_class: str) -> Dict[str, Any]:
    """Ingress routing <name>.local/ to the endpoint under the given class."""
    metadata = _metadata(declaration, route_name(declaration))
    metadata["annotations"] = {LEGACY_ROUTE_CLASS_ANNOTATION: route_class}
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": metadata,
        "spec": {
            "ingressClassName": route_class,
            "rules": [
                {
                    "host": route_host(declaration),
                    "http": {
                        "paths": [
                            {
                                "path": "/",
                                "pathType": "Prefix",
                                "backend": {
                                    "service": {
                                        "name": declaration.name,
                                        "port": {
                                            "number": declaration.spec.service_port
                                        },
                                    }
                                },
                            }
                        ]
                    },
                }
            ],
        },
    }
