#!/usr/bin/env python3
"""
CLI tool for the SimpleApp operator
Provides a kubectl-like interface for submitting and managing SimpleApps
"""

import json
from typing import Any, Dict, List, Optional

import click
import requests
import yaml
from tabulate import tabulate

from cluster import SIMPLEAPP
from config import ClusterConfig
from declaration import DEFAULT_NAMESPACE, render_declaration
from validation import validate_declaration


class SimpleAppCLI:
    """CLI client for SimpleApp declarations on the API server"""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        verify: Any = True,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {"Accept": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.verify = verify
        self.timeout = timeout

    @classmethod
    def from_config(cls, cluster_config: ClusterConfig) -> "SimpleAppCLI":
        verify: Any = cluster_config.verify_ssl
        if verify and cluster_config.ca_file:
            verify = cluster_config.ca_file
        return cls(
            cluster_config.api_url,
            token=cluster_config.token,
            verify=verify,
            timeout=cluster_config.request_timeout,
        )

    def _make_request(self, method: str, endpoint: str, quiet_status=(), **kwargs):
        """Make HTTP request to the API server"""
        url = f"{self.base_url}{endpoint}"
        try:
            response = requests.request(
                method,
                url,
                headers=self.headers,
                verify=self.verify,
                timeout=self.timeout,
                **kwargs,
            )
            if response.status_code in quiet_status:
                return None
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            click.echo(f"Error: {e}", err=True)
            if hasattr(e, "response") and e.response is not None:
                try:
                    error_detail = e.response.json()
                    detail = error_detail.get("message", error_detail)
                    click.echo(f"Detail: {detail}", err=True)
                except (ValueError, json.JSONDecodeError):
                    click.echo(f"Response: {e.response.text}", err=True)
            return None

    def submit(self, document: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Create a declaration, or replace it when it already exists"""
        metadata = document.setdefault("metadata", {})
        namespace = metadata.setdefault("namespace", DEFAULT_NAMESPACE)
        name = metadata["name"]

        existing = self._make_request(
            "GET", SIMPLEAPP.path(namespace, name), quiet_status=(404,)
        )
        if existing is None:
            return self._make_request("POST", SIMPLEAPP.path(namespace), json=document)

        # Replace carries the live resourceVersion for optimistic concurrency
        metadata["resourceVersion"] = existing["metadata"]["resourceVersion"]
        return self._make_request("PUT", SIMPLEAPP.path(namespace, name), json=document)

    def list(self, namespace: Optional[str] = None) -> Optional[List[Dict[str, Any]]]:
        result = self._make_request("GET", SIMPLEAPP.path(namespace))
        if result is None:
            return None
        return result.get("items") or []

    def delete(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        return self._make_request("DELETE", SIMPLEAPP.path(namespace, name))


def _load_document(filename: str) -> Dict[str, Any]:
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def _non_empty(ctx, param, value):
    if isinstance(value, str) and not value.strip():
        raise click.BadParameter("must not be empty")
    return value


@click.group()
@click.option("--server", envvar="KUBE_API_URL", help="API server URL")
@click.option("--token", envvar="KUBE_TOKEN", help="Bearer token")
@click.option(
    "--insecure-skip-tls-verify", is_flag=True, help="Skip TLS certificate checks"
)
@click.pass_context
def cli(ctx, server, token, insecure_skip_tls_verify):
    """SimpleApp CLI - kubectl-like interface for SimpleApp declarations"""
    cluster_config = ClusterConfig.from_env()
    if server:
        cluster_config.api_url = server
    if token:
        cluster_config.token = token
    if insecure_skip_tls_verify:
        cluster_config.verify_ssl = False
    ctx.obj = SimpleAppCLI.from_config(cluster_config)


@cli.command()
@click.option("--name", required=True, callback=_non_empty, help="Application name")
@click.option("--image", required=True, callback=_non_empty, help="Container image")
@click.option("--replicas", type=int, default=1, show_default=True)
@click.option("--container-port", type=int, required=True)
@click.option("--service-port", type=int, default=80, show_default=True)
@click.option("--namespace", "-n", default=DEFAULT_NAMESPACE, show_default=True)
@click.pass_obj
def deploy(client, name, image, replicas, container_port, service_port, namespace):
    """Render a SimpleApp from its fields and submit it"""
    document = render_declaration(
        name=name.strip(),
        image=image.strip(),
        container_port=container_port,
        replicas=replicas,
        service_port=service_port,
        namespace=namespace.strip() or DEFAULT_NAMESPACE,
    )

    result = client.submit(document)

    if result:
        metadata = document["metadata"]
        click.echo(f"SimpleApp {metadata['namespace']}/{metadata['name']} submitted")
        click.echo(json.dumps(result, indent=2))
    else:
        raise SystemExit(1)


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.pass_obj
def apply(client, filename):
    """Apply a SimpleApp from a YAML/JSON file"""
    document = _load_document(filename)

    result = client.submit(document)

    if result:
        metadata = result.get("metadata", {})
        click.echo("SimpleApp applied successfully!")
        click.echo(f"Name: {metadata.get('name')}")
        click.echo(f"Namespace: {metadata.get('namespace')}")
        click.echo(f"Resource Version: {metadata.get('resourceVersion')}")
    else:
        raise SystemExit(1)


@cli.command(name="list")
@click.option(
    "--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table"
)
@click.option("--namespace", "-n", default=None, help="Limit to one namespace")
@click.pass_obj
def list_apps(client, output, namespace):
    """List SimpleApps in all namespaces"""
    items = client.list(namespace)
    if items is None:
        raise SystemExit(1)

    if output == "json":
        click.echo(json.dumps(items, indent=2))
        return
    if output == "yaml":
        click.echo(yaml.dump(items, default_flow_style=False))
        return

    if not items:
        click.echo("No SimpleApps found")
        return

    headers = ["Namespace", "Name", "Image", "Replicas", "Ready", "Ports"]
    rows = []
    for item in items:
        metadata = item.get("metadata", {})
        spec = item.get("spec", {})
        status = item.get("status") or {}
        rows.append(
            [
                metadata.get("namespace", ""),
                metadata.get("name", ""),
                spec.get("image", ""),
                spec.get("replicas", 1),
                status.get("readyReplicas", 0),
                f"{spec.get('servicePort', 80)}->{spec.get('containerPort', '')}",
            ]
        )

    click.echo(tabulate(rows, headers=headers, tablefmt="grid"))


@cli.command()
@click.argument("name")
@click.option("--namespace", "-n", default=DEFAULT_NAMESPACE, show_default=True)
@click.confirmation_option(prompt="Are you sure you want to delete this SimpleApp?")
@click.pass_obj
def delete(client, name, namespace):
    """Delete a SimpleApp (its dependents are garbage collected)"""
    result = client.delete(namespace, name)

    if result:
        click.echo(f"SimpleApp {namespace}/{name} deleted")
    else:
        raise SystemExit(1)


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
def validate(filename):
    """Validate a SimpleApp document without submitting it"""
    document = _load_document(filename)

    valid, error = validate_declaration(document)

    if valid:
        click.echo(f"{filename} is a valid SimpleApp")
    else:
        click.echo(f"{filename} is invalid:", err=True)
        for message in error.split("; "):
            click.echo(f"  - {message}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
