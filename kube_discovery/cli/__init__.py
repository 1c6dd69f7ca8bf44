"""Command-line interface."""

from kube_discovery.cli.probe import cli, main


__all__ = ["cli", "main"]
