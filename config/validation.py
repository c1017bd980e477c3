# config/validation.py

"""
Environment variable validation for the reconciliation service.
Validates required environment variables at startup.
"""

import os
import sys
from typing import List, Tuple

_VALID_ISOLATION_LEVELS = {
    "READ COMMITTED",
    "READ UNCOMMITTED",
    "REPEATABLE READ",
    "SERIALIZABLE",
    "AUTOCOMMIT",
}


def validate_environment(flask_env: str = None) -> Tuple[bool, List[str]]:
    """
    Validate required environment variables.

    Args:
        flask_env: Flask environment (development, production, testing)
                  If None, reads from FLASK_ENV environment variable

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if flask_env is None:
        flask_env = os.environ.get("FLASK_ENV", "development")

    errors = []

    # Only validate in production
    if flask_env != "production":
        return True, []

    secret_key = os.environ.get("SECRET_KEY", "")
    if not secret_key or secret_key == "your-secret-key" or secret_key == "your_secret_key":
        errors.append(
            "SECRET_KEY is required in production and must not be the default value. "
            'Generate a secure key: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        errors.append(
            "DATABASE_URL is required in production. "
            "Set it to your PostgreSQL or MySQL connection string."
        )
    elif database_url.startswith("sqlite"):
        errors.append("DATABASE_URL must point to a server database in production, not SQLite.")

    isolation_level = os.environ.get("DB_ISOLATION_LEVEL")
    if isolation_level and isolation_level.strip().upper() not in _VALID_ISOLATION_LEVELS:
        errors.append(
            f"DB_ISOLATION_LEVEL '{isolation_level}' is not supported. "
            f"Use one of: {', '.join(sorted(_VALID_ISOLATION_LEVELS))}."
        )

    if os.environ.get("REQUIRE_ACTOR", "true").lower() in {"0", "false", "no", "off"}:
        errors.append("REQUIRE_ACTOR must stay enabled in production so every mutation is attributable.")

    is_valid = len(errors) == 0
    return is_valid, errors


def validate_and_exit(flask_env: str = None) -> None:
    """
    Validate environment variables and exit with error if validation fails.
    Intended to be called at application startup.

    Args:
        flask_env: Flask environment (development, production, testing)
    """
    is_valid, errors = validate_environment(flask_env)

    if not is_valid:
        print("=" * 80, file=sys.stderr)
        print("ENVIRONMENT VALIDATION FAILED", file=sys.stderr)
        print("=" * 80, file=sys.stderr)
        print("\nThe following environment variables are missing or invalid:\n", file=sys.stderr)

        for i, error in enumerate(errors, 1):
            print(f"{i}. {error}", file=sys.stderr)

        print("\n" + "=" * 80, file=sys.stderr)
        print("Please check your .env file or environment variables.", file=sys.stderr)
        print("=" * 80, file=sys.stderr)

        sys.exit(1)
