"""Configuration inspection commands."""

import json
import sys

import click
from pydantic import ValidationError

from mesh_rbac.cli.utils import error, header, key_values, success
from mesh_rbac.core.settings import get_logging_settings, get_rbac_settings


@click.group(name="config")
def config() -> None:
    """Configuration management commands."""


@config.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "table"]),
    default="table",
    help="Output format",
)
def show(output_format: str) -> None:
    """Display the effective RBAC and logging settings."""
    try:
        config_dict: dict[str, dict[str, object]] = {
            "rbac": get_rbac_settings().model_dump(mode="json"),
            "logging": get_logging_settings().model_dump(mode="json"),
        }
    except ValidationError as e:
        error(f"Failed to load configuration: {e}")
        sys.exit(1)

    if output_format == "json":
        click.echo(json.dumps(config_dict, indent=2, default=str))
        return

    header("CONFIGURATION SETTINGS")
    for section, values in config_dict.items():
        click.echo(f"\n[{section.upper()}]")
        key_values(values, width=30)

    success("Configuration loaded successfully!")
