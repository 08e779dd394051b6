#!/usr/bin/env python3
"""
CLI tool for the Runtime Operator
Talks to the operator's status API to inspect and trigger reconcile passes
"""

import json
import os

import click
import requests
import yaml
from tabulate import tabulate

API_BASE_URL = os.getenv("RUNTIME_OPERATOR_URL", "http://localhost:8081")


class RuntimeOperatorCLI:
    """CLI client for the Runtime Operator status API"""

    def __init__(self, base_url: str = API_BASE_URL):
        self.base_url = base_url.rstrip("/")

    def _make_request(self, method: str, endpoint: str, **kwargs):
        """Make HTTP request to the API"""
        url = f"{self.base_url}{endpoint}"
        try:
            response = requests.request(method, url, timeout=10, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            click.echo(f"Error: {e}", err=True)
            if getattr(e, "response", None) is not None:
                try:
                    click.echo(f"Detail: {e.response.json()}", err=True)
                except ValueError:
                    click.echo(f"Response: {e.response.text}", err=True)
            return None


@click.group()
@click.option(
    "--url",
    default=API_BASE_URL,
    show_default=True,
    help="Base URL of the operator status API",
)
@click.pass_context
def cli(ctx, url):
    """Runtime Operator CLI - inspect and drive KogitoRuntime reconciliation"""
    ctx.obj = RuntimeOperatorCLI(url)


@cli.command()
@click.pass_obj
def health(client):
    """Show operator liveness and readiness"""
    live = client._make_request("GET", "/healthz")
    if live is None:
        raise SystemExit(1)
    click.echo(f"Live: {live['status']}")

    try:
        response = requests.get(f"{client.base_url}/readyz", timeout=10)
        ready = response.json().get("status", "unknown")
    except requests.exceptions.RequestException as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"Ready: {ready}")


@cli.command()
@click.option("--namespace", "-n", default=None, help="Only passes in this namespace")
@click.option("--name", default=None, help="Only passes for this KogitoRuntime")
@click.option("--limit", "-l", default=20, help="Number of passes to show")
@click.option(
    "--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table"
)
@click.pass_obj
def passes(client, namespace, name, limit, output):
    """Show recent reconcile passes"""
    params = {"limit": limit}
    if namespace:
        params["namespace"] = namespace
    if name:
        params["name"] = name

    result = client._make_request("GET", "/api/v1/passes", params=params)
    if result is None:
        raise SystemExit(1)

    if output == "json":
        click.echo(json.dumps(result, indent=2))
        return
    if output == "yaml":
        click.echo(yaml.safe_dump(result, default_flow_style=False))
        return

    headers = ["Namespace", "Name", "Outcome", "Requeue", "Duration", "Time", "Error"]
    rows = []
    for entry in result:
        rows.append(
            [
                entry["namespace"],
                entry["name"],
                entry["outcome"],
                f"{entry['requeue_after']}s" if entry.get("requeue_after") else "-",
                f"{entry['duration_seconds']:.3f}s",
                entry["timestamp"],
                entry.get("error") or "",
            ]
        )
    click.echo(tabulate(rows, headers=headers, tablefmt="grid"))


@cli.command()
@click.argument("namespace")
@click.argument("name")
@click.pass_obj
def reconcile(client, namespace, name):
    """Manually trigger reconciliation for a KogitoRuntime"""
    result = client._make_request(
        "POST", f"/api/v1/namespaces/{namespace}/kogitoruntimes/{name}/reconcile"
    )
    if result is None:
        raise SystemExit(1)
    click.echo(f"Reconciliation of {namespace}/{name} {result['status']}")


@cli.command()
@click.pass_obj
def deployers(client):
    """List deployer plugins known to the operator"""
    result = client._make_request("GET", "/api/v1/plugins/deployers")
    if result is None:
        raise SystemExit(1)
    rows = [
        [entry["name"], entry["version"], "*" if entry.get("active") else ""]
        for entry in result
    ]
    click.echo(tabulate(rows, headers=["Name", "Version", "Active"]))


@cli.command()
@click.option("--namespace", "-n", default=None, help="Only passes in this namespace")
@click.pass_obj
def watch(client, namespace):
    """Follow reconcile passes as they finish"""
    params = {"namespace": namespace} if namespace else {}
    try:
        with requests.get(
            f"{client.base_url}/api/v1/events", params=params, stream=True
        ) as response:
            response.raise_for_status()
            for line in response.iter_lines(decode_unicode=True):
                if not line or not line.startswith("data: "):
                    continue
                event = json.loads(line[len("data: ") :])
                suffix = ""
                if event.get("requeue_after"):
                    suffix = f" (requeue in {event['requeue_after']}s)"
                elif event.get("error"):
                    suffix = f" ({event['error']})"
                click.echo(
                    f"{event['timestamp']} {event['namespace']}/{event['name']} "
                    f"{event['outcome']}{suffix}"
                )
    except requests.exceptions.RequestException as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    except KeyboardInterrupt:
        click.echo("\nStopped following")


if __name__ == "__main__":
    cli()
