"""Unit tests for desired.py - Desired shapes of owned objects."""

import json

from declaration import Declaration
from desired import (
    desired_endpoint,
    desired_route,
    desired_workload,
    owner_reference,
    route_host,
    route_name,
    selector_labels,
)
from conftest import make_declaration_object


def _declaration(**kwargs):
    return Declaration.from_resource(make_declaration_object(**kwargs))


class TestOwnerReference:
    """Tests for owner references on dependents."""

    def test_owner_reference(self):
        ref = owner_reference(_declaration())
        assert ref == {
            "apiVersion": "apps.myapp.io/v1",
            "kind": "SimpleApp",
            "name": "web",
            "uid": "web-uid",
            "controller": True,
            "blockOwnerDeletion": True,
        }

    def test_every_dependent_is_owned(self):
        declaration = _declaration()
        for obj in (
            desired_workload(declaration),
            desired_endpoint(declaration),
            desired_route(declaration, "nginx"),
        ):
            refs = obj["metadata"]["ownerReferences"]
            assert len(refs) == 1
            assert refs[0]["uid"] == "web-uid"
            assert refs[0]["controller"] is True
            assert obj["metadata"]["namespace"] == "default"


class TestDesiredWorkload:
    """Tests for the desired Deployment."""

    def test_shape(self):
        workload = desired_workload(_declaration(replicas=3, image="app:v2"))

        assert workload["apiVersion"] == "apps/v1"
        assert workload["kind"] == "Deployment"
        assert workload["metadata"]["name"] == "web"
        assert workload["spec"]["replicas"] == 3
        assert workload["spec"]["selector"] == {"matchLabels": {"app": "web"}}
        assert workload["spec"]["template"]["metadata"]["labels"] == {"app": "web"}

        containers = workload["spec"]["template"]["spec"]["containers"]
        assert containers == [
            {
                "name": "app",
                "image": "app:v2",
                "imagePullPolicy": "IfNotPresent",
                "ports": [{"containerPort": 8080}],
            }
        ]

    def test_deterministic(self):
        declaration = _declaration()
        assert desired_workload(declaration) == desired_workload(declaration)


class TestDesiredEndpoint:
    """Tests for the desired Service."""

    def test_shape(self):
        endpoint = desired_endpoint(_declaration(service_port=9090))

        assert endpoint["apiVersion"] == "v1"
        assert endpoint["kind"] == "Service"
        assert endpoint["metadata"]["name"] == "web"
        assert endpoint["spec"]["type"] == "ClusterIP"
        assert endpoint["spec"]["selector"] == selector_labels(_declaration())
        assert endpoint["spec"]["ports"] == [{"port": 9090, "targetPort": 8080}]


class TestDesiredRoute:
    """Tests for the desired Ingress."""

    def test_naming(self):
        declaration = _declaration(name="shop")
        assert route_name(declaration) == "shop-ingress"
        assert route_host(declaration) == "shop.local"

    def test_shape(self):
        route = desired_route(_declaration(), "traefik")

        assert route["apiVersion"] == "networking.k8s.io/v1"
        assert route["kind"] == "Ingress"
        assert route["metadata"]["name"] == "web-ingress"
        assert route["metadata"]["annotations"] == {
            "kubernetes.io/ingress.class": "traefik"
        }
        assert route["spec"]["ingressClassName"] == "traefik"

        rule = route["spec"]["rules"][0]
        assert rule["host"] == "web.local"
        path = rule["http"]["paths"][0]
        assert path["path"] == "/"
        assert path["pathType"] == "Prefix"
        assert path["backend"] == {
            "service": {"name": "web", "port": {"number": 80}}
        }


class TestDeterminism:
    """Rendering the same declaration twice yields identical documents."""

    def test_sorted_json_identical(self):
        first = _declaration()
        second = _declaration()
        for render in (desired_workload, desired_endpoint):
            assert json.dumps(render(first), sort_keys=True) == json.dumps(
                render(second), sort_keys=True
            )
        assert json.dumps(desired_route(first, "nginx"), sort_keys=True) == (
            json.dumps(desired_route(second, "nginx"), sort_keys=True)
        )
