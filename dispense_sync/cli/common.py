"""
Arguments and settings resolution shared by the command-line tools.
"""

import argparse

from dispense_sync.config import SyncSettings
from dispense_sync.observability.logger import configure_logging

# CLI flag -> settings field
SETTINGS_ARGUMENTS = {
    "db_host": "db_host",
    "db_port": "db_port",
    "db_name": "db_name",
    "db_user": "db_user",
    "db_password": "db_password",
    "table": "table_name",
    "log_level": "log_level",
    "log_format": "log_format",
}


def add_settings_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add configuration-source and database options.

    Defaults are None so that unset flags fall through to the settings file
    and the environment.
    """
    parser.add_argument(
        "--config",
        help="Path to YAML settings file (optional)"
    )
    parser.add_argument(
        "--env-file",
        help="Path to .env file with DISPENSE_* variables (optional)"
    )
    parser.add_argument(
        "--db-host",
        help="Database host (default: localhost)"
    )
    parser.add_argument(
        "--db-port",
        type=int,
        help="Database port (default: 5432)"
    )
    parser.add_argument(
        "--db-name",
        help="Database name (default: pharmacy)"
    )
    parser.add_argument(
        "--db-user",
        help="Database user (default: dispense_sync)"
    )
    parser.add_argument(
        "--db-password",
        help="Database password (prefer DISPENSE_DB_PASSWORD)"
    )
    parser.add_argument(
        "--table",
        help="Dispense middle table (default: tb_dispense_middle)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: INFO)"
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        help="Log format (default: json)"
    )


def load_settings(args: argparse.Namespace, extra: dict[str, str] | None = None) -> SyncSettings:
    """
    Resolve settings from file, environment and parsed flags, then apply logging.

    Args:
        args: Parsed arguments
        extra: Additional CLI flag -> settings field pairs

    Raises:
        ConfigurationError: If settings are invalid
    """
    mapping = {**SETTINGS_ARGUMENTS, **(extra or {})}
    overrides = {field: getattr(args, flag, None) for flag, field in mapping.items()}

    settings = SyncSettings.load(
        config_path=args.config,
        env_file=args.env_file,
        **overrides,
    )
    configure_logging(settings.log_level, settings.log_format)
    return settings


def settings_parent_parser() -> argparse.ArgumentParser:
    """Parent parser carrying the settings options, for use with ``parents=``."""
    parent = argparse.ArgumentParser(add_help=False)
    add_settings_arguments(parent)
    return parent
