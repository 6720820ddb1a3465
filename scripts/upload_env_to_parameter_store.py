#!/usr/bin/env python3
"""
Upload Plaid credentials to AWS Parameter Store.

This script reads PLAID_CLIENT_ID and PLAID_SECRET from a .env file and
stores them under the prefix the API reads at startup (``/coinly`` by
default), with the secret encrypted.
"""

import sys
from pathlib import Path

import boto3
import click
from botocore.exceptions import ClientError
from dotenv import dotenv_values

from services.parameter_store import (DEFAULT_PREFIX, PLAID_CLIENT_ID_KEY,
                                      PLAID_SECRET_KEY)

ENV_KEYS = {
    PLAID_CLIENT_ID_KEY: "PLAID_CLIENT_ID",
    PLAID_SECRET_KEY: "PLAID_SECRET",
}


def load_env_file(env_file_path: str = ".env") -> dict:
    """
    Read the Plaid parameters from a .env file.

    Args:
        env_file_path: Path to .env file

    Returns:
        Parameter key -> value, for the variables that are set
    """
    if not Path(env_file_path).exists():
        click.secho(f"Error: {env_file_path} file not found", fg="red", err=True)
        sys.exit(1)

    values = dotenv_values(env_file_path)
    parameters = {
        key: values.get(env_name)
        for key, env_name in ENV_KEYS.items()
        if values.get(env_name)
    }

    if not parameters:
        click.secho("Warning: No Plaid parameters found in .env file", fg="yellow")
        click.echo(f"Expected variables: {', '.join(ENV_KEYS.values())}")

    return parameters


def upload_parameters(
    parameters: dict, parameter_prefix: str = DEFAULT_PREFIX, dry_run: bool = False
) -> None:
    """
    Upload parameters to AWS Parameter Store.

    Args:
        parameters: Dictionary of parameter names to values
        parameter_prefix: Prefix for parameter names
        dry_run: If True, only print what would be uploaded
    """
    if not parameters:
        click.secho("No parameters to upload", fg="yellow")
        return

    if dry_run:
        click.secho("DRY RUN - Would upload the following parameters:", fg="blue")
        for param_name, value in parameters.items():
            full_name = f"{parameter_prefix}/{param_name}"
            masked_value = value[:4] + "..." if len(value) > 4 else "..."
            click.echo(f"  {full_name} = {masked_value}")
        return

    ssm = boto3.client("ssm")

    for param_name, value in parameters.items():
        full_name = f"{parameter_prefix}/{param_name}"
        parameter_type = "SecureString" if "secret" in param_name else "String"

        try:
            response = ssm.put_parameter(
                Name=full_name,
                Value=value,
                Type=parameter_type,
                Description=f"Plaid parameter: {param_name}",
                Overwrite=True,
            )
            click.secho(
                f"✓ Uploaded {full_name} (version {response['Version']})", fg="green"
            )
        except ClientError as e:
            click.secho(f"✗ Failed to upload {full_name}: {e}", fg="red", err=True)


def verify_parameters(parameters: dict, parameter_prefix: str = DEFAULT_PREFIX) -> None:
    """
    Verify that parameters were uploaded correctly.

    Args:
        parameters: Dictionary of parameter names to check
        parameter_prefix: Prefix for parameter names
    """
    click.secho("\nVerifying uploaded parameters...", fg="blue")
    ssm = boto3.client("ssm")

    for param_name in parameters.keys():
        full_name = f"{parameter_prefix}/{param_name}"

        try:
            response = ssm.get_parameter(Name=full_name, WithDecryption=True)
            click.secho(
                f"✓ {full_name} exists (version {response['Parameter']['Version']})",
                fg="green",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ParameterNotFound":
                click.secho(f"✗ {full_name} not found", fg="red")
            else:
                click.secho(f"✗ Error checking {full_name}: {e}", fg="red")


@click.command()
@click.option("--env-file", default=".env", help="Path to .env file", show_default=True)
@click.option(
    "--prefix", default=DEFAULT_PREFIX, help="Parameter Store prefix", show_default=True
)
@click.option(
    "--dry-run", is_flag=True, help="Show what would be uploaded without uploading"
)
@click.option("--verify", is_flag=True, help="Verify parameters after upload")
def main(env_file: str, prefix: str, dry_run: bool, verify: bool):
    """
    Upload Plaid credentials from a .env file to AWS Parameter Store.
    """
    parameters = load_env_file(env_file)

    if not parameters:
        click.secho("No parameters found to upload", fg="red", err=True)
        sys.exit(1)

    click.secho(f"Found {len(parameters)} Plaid parameter(s)", fg="green")
    upload_parameters(parameters, prefix, dry_run)

    if dry_run:
        click.secho("\nDry run complete.", fg="blue")
        return

    if verify:
        verify_parameters(parameters, prefix)
    click.secho("\nParameter upload complete!", fg="green")
    click.echo(f"Parameters are now available at prefix: {prefix}")


if __name__ == "__main__":
    main()
