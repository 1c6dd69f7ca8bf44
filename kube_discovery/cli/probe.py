"""CLI for probing Kubernetes API discovery from a shell."""

import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
import structlog

from kube_discovery import __version__
from kube_discovery.api import DiscoveryAPI
from kube_discovery.config.loader import load_discovery_configs
from kube_discovery.config.models import (
    BasicAuth,
    DiscoveryConfig,
    Role,
    Selector,
    TLSConfig,
)
from kube_discovery.errors import DiscoveryError
from kube_discovery.observability.logging import (
    bind_source_context,
    clear_source_context,
    configure_logging,
)
from kube_discovery.settings.app import DiscoverySettings


logger = structlog.get_logger()

ROLE_CHOICES = [role.value for role in Role]


def _config_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the options describing one discovery source."""
    options = [
        click.option(
            "--config",
            "config_path",
            type=click.Path(exists=True, path_type=Path),
            help="YAML file with a kubernetes_sd_configs list.",
        ),
        click.option(
            "--index",
            type=int,
            default=0,
            help="Entry of kubernetes_sd_configs to use (default: 0).",
        ),
        click.option(
            "--api-server",
            help="API server URL; omit to bootstrap from the pod environment.",
        ),
        click.option("--username", help="Basic auth username."),
        click.option("--password-file", help="Basic auth password file."),
        click.option("--bearer-token-file", help="Bearer token file."),
        click.option("--ca-file", help="CA certificate file."),
        click.option("--cert-file", help="Client certificate file."),
        click.option("--key-file", help="Client key file."),
        click.option("--server-name", help="TLS server name override."),
        click.option(
            "--insecure-skip-verify",
            is_flag=True,
            help="Skip TLS certificate verification.",
        ),
        click.option(
            "--namespace",
            "namespaces",
            multiple=True,
            help="Namespace to restrict to (repeatable).",
        ),
        click.option(
            "--json-logs/--no-json-logs",
            default=None,
            help="Use JSON format for logs (default: KUBE_SD_LOG_JSON, true).",
        ),
        click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_config(  # noqa: PLR0913
    config_path: Path | None,
    index: int,
    api_server: str | None,
    username: str | None,
    password_file: str | None,
    bearer_token_file: str | None,
    ca_file: str | None,
    cert_file: str | None,
    key_file: str | None,
    server_name: str | None,
    insecure_skip_verify: bool,
    namespaces: tuple[str, ...],
    selectors: tuple[Selector, ...] = (),
) -> DiscoveryConfig:
    """Build a discovery config from a YAML file or from options.

    Raises:
        DiscoveryError: If the YAML file is invalid.
        click.BadParameter: If the options are inconsistent.
    """
    if config_path is not None:
        configs = load_discovery_configs(config_path)
        if not 0 <= index < len(configs):
            msg = f"{config_path} has {len(configs)} entries"
            raise click.BadParameter(msg, param_hint="--index")
        config = configs[index]
        if selectors:
            config = config.model_copy(
                update={"selectors": config.selectors + selectors}
            )
        return config

    tls_config = None
    if ca_file or cert_file or key_file or server_name or insecure_skip_verify:
        tls_config = TLSConfig(
            ca_file=ca_file,
            cert_file=cert_file,
            key_file=key_file,
            server_name=server_name,
            insecure_skip_verify=insecure_skip_verify,
        )

    try:
        return DiscoveryConfig(
            api_server=api_server,
            basic_auth=(
                BasicAuth(username=username, password_file=password_file)
                if username
                else None
            ),
            bearer_token_file=bearer_token_file,
            tls_config=tls_config,
            namespaces=namespaces,
            selectors=selectors,
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _setup(json_logs: bool | None, verbose: bool) -> DiscoverySettings:
    """Configure logging and load process settings.

    The log format follows the settings unless a flag overrides it.
    """
    settings = DiscoverySettings()
    level: int | str = logging.DEBUG if verbose else settings.log_level
    json_format = settings.log_json if json_logs is None else json_logs
    configure_logging(level=level, json_format=json_format)
    return settings


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Kubernetes API discovery probe."""


@cli.command()
@_config_options
@click.option(
    "--role",
    required=True,
    type=click.Choice(ROLE_CHOICES),
    help="Role whose selectors apply to the request.",
)
@click.option(
    "--path",
    "resource_path",
    required=True,
    help="Resource path, e.g. /api/v1/pods.",
)
@click.option("--label-selector", help="Label selector for the role.")
@click.option("--field-selector", help="Field selector for the role.")
@click.option(
    "--timeout",
    "deadline",
    type=float,
    help="Seconds the request may take.",
)
@click.option(
    "--size-only",
    is_flag=True,
    help="Print the payload size instead of the payload.",
)
def fetch(  # noqa: PLR0913
    config_path: Path | None,
    index: int,
    api_server: str | None,
    username: str | None,
    password_file: str | None,
    bearer_token_file: str | None,
    ca_file: str | None,
    cert_file: str | None,
    key_file: str | None,
    server_name: str | None,
    insecure_skip_verify: bool,
    namespaces: tuple[str, ...],
    json_logs: bool | None,
    verbose: bool,
    role: str,
    resource_path: str,
    label_selector: str | None,
    field_selector: str | None,
    deadline: float | None,
    size_only: bool,
) -> None:
    """Fetch one resource path from the API server."""
    settings = _setup(json_logs, verbose)

    selectors: tuple[Selector, ...] = ()
    if label_selector or field_selector:
        selectors = (
            Selector(role=Role(role), label=label_selector, field=field_selector),
        )

    try:
        config = _build_config(
            config_path,
            index,
            api_server,
            username,
            password_file,
            bearer_token_file,
            ca_file,
            cert_file,
            key_file,
            server_name,
            insecure_skip_verify,
            namespaces,
            selectors,
        )
        bind_source_context(config.fingerprint())
        api = DiscoveryAPI.from_settings(settings)
        data = api.get_api_response(config, role, resource_path, deadline=deadline)
    except DiscoveryError as e:
        logger.error("probe_failed", **e.to_dict())
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    finally:
        clear_source_context()

    if size_only:
        click.echo(str(len(data)))
    else:
        click.get_binary_stream("stdout").write(data)


@cli.command()
@_config_options
def resolve(  # noqa: PLR0913
    config_path: Path | None,
    index: int,
    api_server: str | None,
    username: str | None,
    password_file: str | None,
    bearer_token_file: str | None,
    ca_file: str | None,
    cert_file: str | None,
    key_file: str | None,
    server_name: str | None,
    insecure_skip_verify: bool,
    namespaces: tuple[str, ...],
    json_logs: bool | None,
    verbose: bool,
) -> None:
    """Resolve server address and credentials without fetching."""
    settings = _setup(json_logs, verbose)

    try:
        config = _build_config(
            config_path,
            index,
            api_server,
            username,
            password_file,
            bearer_token_file,
            ca_file,
            cert_file,
            key_file,
            server_name,
            insecure_skip_verify,
            namespaces,
        )
        context = DiscoveryAPI.from_settings(settings).get_api_config(config)
    except DiscoveryError as e:
        logger.error("probe_failed", **e.to_dict())
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    auth_scheme = "none"
    if context.authorization:
        auth_scheme = context.authorization.split(" ", 1)[0]
    click.echo(f"Server: {context.server_url}")
    click.echo(f"Host: {context.host_port}")
    click.echo(f"Auth: {auth_scheme}")
    click.echo(f"Fingerprint: {context.fingerprint}")


def main() -> None:
    """Console script entry point."""
    cli()
