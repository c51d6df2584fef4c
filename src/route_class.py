"""
Route-Class Resolver - Which ingress class, if any, routes should use.

The value is process-wide configuration that may change between passes, so it
is read through a provider on every call and never cached.
"""

import os
from abc import ABC, abstractmethod
from typing import Optional

ROUTE_CLASS_ENV_VAR = "INGRESS_CLASS_NAME"


class RouteClassProvider(ABC):
    """Source of the configured route class."""

    @abstractmethod
    def get_route_class(self) -> Optional[str]:
        """Return the raw configured value, or None when unset."""
        pass


class EnvRouteClassProvider(RouteClassProvider):
    """Reads the route class from an environment variable at call time."""

    def __init__(self, env_var: str = ROUTE_CLASS_ENV_VAR):
        self.env_var = env_var

    def get_route_class(self) -> Optional[str]:
        return os.getenv(self.env_var)


class StaticRouteClassProvider(RouteClassProvider):
    """Holds a value set in code; used by tests and embedders."""

    def __init__(self, route_class: Optional[str] = None):
        self.route_class = route_class

    def set(self, route_class: Optional[str]) -> None:
        self.route_class = route_class

    def get_route_class(self) -> Optional[str]:
        return self.route_class


def resolve_route_class(provider: RouteClassProvider) -> Optional[str]:
    """
    Resolve the active route class.

    Args:
        provider: Where to read the configured value from

    Returns:
        The class name, or None when no route is desired
    """
    value = provider.get_route_class()
    if value is None:
        return None
    value = value.strip()
    return value or None
