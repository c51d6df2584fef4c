"""
Configuration module for the SimpleApp operator.

Loads configuration from environment variables. The ingress class is not
part of this cached configuration; it is read on every reconciliation pass
through route_class.EnvRouteClassProvider.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
DEFAULT_API_URL = "https://kubernetes.default.svc"


def _read_file(path: Path) -> Optional[str]:
    try:
        return path.read_text().strip()
    except OSError:
        return None


@dataclass
class ClusterConfig:
    """Kubernetes API server connection configuration."""

    api_url: str = DEFAULT_API_URL
    token: Optional[str] = field(default=None, repr=False)  # Never log token
    ca_file: Optional[str] = None
    verify_ssl: bool = True
    request_timeout: float = 30.0
    watch_namespace: Optional[str] = None  # None watches all namespaces

    @classmethod
    def from_env(cls):
        """
        Load from environment variables.

        Falls back to the in-cluster service account when explicit values
        are not provided.
        """
        api_url = os.getenv("KUBE_API_URL")
        if not api_url:
            host = os.getenv("KUBERNETES_SERVICE_HOST")
            port = os.getenv("KUBERNETES_SERVICE_PORT", "443")
            api_url = f"https://{host}:{port}" if host else DEFAULT_API_URL

        token = os.getenv("KUBE_TOKEN") or _read_file(SERVICE_ACCOUNT_DIR / "token")

        ca_file = os.getenv("KUBE_CA_FILE")
        if not ca_file and (SERVICE_ACCOUNT_DIR / "ca.crt").exists():
            ca_file = str(SERVICE_ACCOUNT_DIR / "ca.crt")

        return cls(
            api_url=api_url,
            token=token,
            ca_file=ca_file,
            verify_ssl=os.getenv("KUBE_VERIFY_SSL", "true").lower() == "true",
            request_timeout=float(os.getenv("KUBE_REQUEST_TIMEOUT", "30")),
            watch_namespace=os.getenv("WATCH_NAMESPACE") or None,
        )


@dataclass
class ControllerConfig:
    """Controller worker pool and requeue configuration."""

    reconcile_interval: int = 300  # seconds between full resyncs
    max_concurrent_reconciles: int = 5
    history_size: int = 100

    # Exponential backoff configuration
    backoff_base_delay: float = 1.0  # base delay in seconds
    backoff_max_delay: float = 300.0  # max delay in seconds
    backoff_jitter_factor: float = 0.1  # ±10% jitter

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            reconcile_interval=int(os.getenv("RECONCILE_INTERVAL", "300")),
            max_concurrent_reconciles=int(os.getenv("MAX_CONCURRENT_RECONCILES", "5")),
            history_size=int(os.getenv("HISTORY_SIZE", "100")),
            backoff_base_delay=float(os.getenv("BACKOFF_BASE_DELAY", "1.0")),
            backoff_max_delay=float(os.getenv("BACKOFF_MAX_DELAY", "300")),
            backoff_jitter_factor=float(os.getenv("BACKOFF_JITTER_FACTOR", "0.1")),
        )


@dataclass
class ProbeConfig:
    """Health probe server configuration."""

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8081
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            enabled=os.getenv("PROBE_ENABLED", "true").lower() == "true",
            host=os.getenv("PROBE_HOST", "0.0.0.0"),
            port=int(os.getenv("PROBE_PORT", "8081")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@dataclass
class Config:
    """Main configuration object."""

    cluster: ClusterConfig
    controller: ControllerConfig
    probes: ProbeConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            cluster=ClusterConfig.from_env(),
            controller=ControllerConfig.from_env(),
            probes=ProbeConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            cluster=ClusterConfig(),
            controller=ControllerConfig(),
            probes=ProbeConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
