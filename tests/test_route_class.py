"""Unit tests for route_class.py - Route class resolution."""

import os
from unittest.mock import patch

from route_class import (
    ROUTE_CLASS_ENV_VAR,
    EnvRouteClassProvider,
    StaticRouteClassProvider,
    resolve_route_class,
)


class TestResolveRouteClass:
    """Tests for resolve_route_class."""

    def test_unset(self):
        assert resolve_route_class(StaticRouteClassProvider()) is None

    def test_empty(self):
        assert resolve_route_class(StaticRouteClassProvider("")) is None

    def test_whitespace_only(self):
        assert resolve_route_class(StaticRouteClassProvider("   ")) is None

    def test_value_is_trimmed(self):
        assert resolve_route_class(StaticRouteClassProvider(" nginx\n")) == "nginx"

    def test_static_provider_can_change(self):
        provider = StaticRouteClassProvider("nginx")
        assert resolve_route_class(provider) == "nginx"
        provider.set(None)
        assert resolve_route_class(provider) is None


class TestEnvRouteClassProvider:
    """Tests for the environment-backed provider."""

    def test_default_variable(self):
        assert ROUTE_CLASS_ENV_VAR == "INGRESS_CLASS_NAME"

    def test_reads_environment(self):
        with patch.dict(os.environ, {"INGRESS_CLASS_NAME": "nginx"}):
            assert resolve_route_class(EnvRouteClassProvider()) == "nginx"

    def test_unset_environment(self):
        with patch.dict(os.environ, {}, clear=True):
            assert resolve_route_class(EnvRouteClassProvider()) is None

    def test_read_on_every_call(self):
        provider = EnvRouteClassProvider()
        with patch.dict(os.environ, {"INGRESS_CLASS_NAME": "nginx"}):
            assert resolve_route_class(provider) == "nginx"
        with patch.dict(os.environ, {"INGRESS_CLASS_NAME": "traefik"}):
            assert resolve_route_class(provider) == "traefik"

    def test_custom_variable(self):
        provider = EnvRouteClassProvider("ROUTE_CLASS")
        with patch.dict(os.environ, {"ROUTE_CLASS": "haproxy"}):
            assert resolve_route_class(provider) == "haproxy"
