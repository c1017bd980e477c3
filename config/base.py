# config/base.py
import os


def _coerce_bool(value, default=False):
    """Convert environment-style truthy/falsey values to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return default


def _coerce_int(value, default, *, minimum=None, maximum=None):
    """
    Parse an integer environment value, falling back to ``default`` when invalid.

    Values outside ``minimum``/``maximum`` are clamped.
    """
    if value in (None, ""):
        return default
    try:
        number = int(str(value).strip())
    except ValueError:
        return default
    if minimum is not None and number < minimum:
        number = minimum
    if maximum is not None and number > maximum:
        number = maximum
    return number


def _normalize_database_url(uri):
    if uri and uri.startswith("postgres://"):
        return uri.replace("postgres://", "postgresql://", 1)
    return uri


def _pooled_engine_options(uri):
    """
    Engine options for server databases.

    SQLite ignores pool sizing, so only the connect args are kept there.
    """
    if uri and uri.startswith("sqlite"):
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": 5,
            }
        }

    options = {
        "pool_size": _coerce_int(os.environ.get("DB_POOL_SIZE"), 10, minimum=1),
        "max_overflow": _coerce_int(os.environ.get("DB_MAX_OVERFLOW"), 5, minimum=0),
        "pool_pre_ping": True,
        "pool_recycle": _coerce_int(os.environ.get("DB_POOL_RECYCLE_SECONDS"), 1800, minimum=60),
    }
    isolation_level = os.environ.get("DB_ISOLATION_LEVEL")
    if isolation_level:
        options["isolation_level"] = isolation_level.strip().upper()
    return options


class Config:
    _flask_env = os.environ.get("FLASK_ENV", "development")
    _is_testing = _flask_env == "testing"
    _is_production = _flask_env == "production"

    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Only require SECRET_KEY in production mode
    if not SECRET_KEY and _is_production:
        raise ValueError(
            "SECRET_KEY environment variable is required in production. "
            'Generate with: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    if not SECRET_KEY and not _is_testing:
        import warnings

        warnings.warn(
            "SECRET_KEY not set. Using default for development only. "
            "Set SECRET_KEY environment variable before deploying.",
            UserWarning,
        )
        SECRET_KEY = "dev-secret-key-change-in-production"

    if not SECRET_KEY:
        SECRET_KEY = "test-secret-key-placeholder"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Caller identity is supplied by the fronting gateway; the service only records it.
    ACTOR_HEADER = os.environ.get("ACTOR_HEADER", "X-Actor-Id")
    REQUIRE_ACTOR = _coerce_bool(os.environ.get("REQUIRE_ACTOR"), default=True)

    # Capture ingestion
    CAPTURE_LOG_REJECTIONS = _coerce_bool(os.environ.get("CAPTURE_LOG_REJECTIONS"), default=True)
    CAPTURE_IDENTIFIER_MAX_LENGTH = _coerce_int(
        os.environ.get("CAPTURE_IDENTIFIER_MAX_LENGTH"), 32, minimum=4, maximum=64
    )
    CAPTURE_UPLOAD_MAX_MB = _coerce_int(os.environ.get("CAPTURE_UPLOAD_MAX_MB"), 25, minimum=1)
    MAX_CONTENT_LENGTH = CAPTURE_UPLOAD_MAX_MB * 1024 * 1024

    # Listing endpoints
    LIST_PAGE_SIZE_MAX = _coerce_int(os.environ.get("LIST_PAGE_SIZE_MAX"), 500, minimum=10)
    LIST_PAGE_SIZE_DEFAULT = _coerce_int(
        os.environ.get("LIST_PAGE_SIZE_DEFAULT"), 50, minimum=1, maximum=LIST_PAGE_SIZE_MAX
    )


class DevelopmentConfig(Config):
    DEBUG = True
    _config_dir = os.path.dirname(os.path.abspath(__file__))
    _project_root = os.path.dirname(_config_dir)
    instance_path = os.path.join(_project_root, "instance")

    if not os.path.exists(instance_path):
        os.makedirs(instance_path, exist_ok=True)

    # SQLite URI format: sqlite:///absolute/path (3 slashes for absolute path)
    db_path_normalized = os.path.join(instance_path, "canvass_dev.db").replace("\\", "/")
    db_uri = f"sqlite:///{db_path_normalized}"

    SQLALCHEMY_DATABASE_URI = _normalize_database_url(os.environ.get("DATABASE_URL", db_uri))
    SQLALCHEMY_ECHO = _coerce_bool(os.environ.get("SQLALCHEMY_ECHO"), default=False)
    SQLALCHEMY_ENGINE_OPTIONS = _pooled_engine_options(SQLALCHEMY_DATABASE_URI)


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "test-secret-key-for-testing-only")
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {
            "check_same_thread": False,
            "timeout": 5,
        }
    }


class ProductionConfig(Config):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(os.environ.get("DATABASE_URL"))
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = _pooled_engine_options(SQLALCHEMY_DATABASE_URI)
