"""Database adapter factory.

Resolves a connection profile (db.toml + ``.db-profile`` lock file or
``<PREFIX>DB_PROFILE`` env var) into a ``DatabaseClient`` adapter, and
checks a profile before it is locked in with ``connect_and_validate()``.
"""

import logging
import os
from pathlib import Path
from urllib.parse import quote

from db_backup.adapters.base import DatabaseClient
from db_backup.adapters.postgres import AsyncPostgresAdapter
from db_backup.adapters.sqlite import AsyncSQLiteAdapter
from db_backup.backup.catalog import DEFAULT_CATALOG
from db_backup.backup.models import BackupSchema
from db_backup.config.loader import load_db_config
from db_backup.config.models import ConnectionResult, DatabaseProfile

logger = logging.getLogger(__name__)

# Profile lock file path
_PROFILE_LOCK_FILE = Path.cwd() / ".db-profile"

PROVIDERS = ("postgres", "sqlite")


# ============================================================================
# Profile Lock File Operations
# ============================================================================


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def read_profile_lock() -> str | None:
    """Read profile name from lock file.

    Returns:
        Profile name if lock file exists, None otherwise
    """
    if _PROFILE_LOCK_FILE.exists():
        return _PROFILE_LOCK_FILE.read_text().strip()
    return None


def write_profile_lock(profile_name: str) -> None:
    """Write profile name to lock file.

    Only call this after a successful connection check.

    Args:
        profile_name: Name of validated profile
    """
    _PROFILE_LOCK_FILE.write_text(profile_name)


def clear_profile_lock() -> None:
    """Remove profile lock file."""
    if _PROFILE_LOCK_FILE.exists():
        _PROFILE_LOCK_FILE.unlink()


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from env var or lock file.

    Priority:
    1. ``{env_prefix}DB_PROFILE`` env var (for initial connect or CI/CD)
    2. .db-profile file (validated profile from previous connect)
    3. Raise ProfileNotFoundError

    Args:
        env_prefix: Prefix for the env var name (e.g. ``"ATT_"`` reads
            ``ATT_DB_PROFILE``).

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_profile = os.environ.get(f"{env_prefix}DB_PROFILE")
    if env_profile:
        return env_profile

    lock_profile = read_profile_lock()
    if lock_profile:
        return lock_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Run: {env_prefix}DB_PROFILE=<name> db-backup connect\n"
        "Profiles are defined in db.toml ([profiles.<name>] sections)."
    )


def get_active_profile(
    env_prefix: str = "", config_path: Path | None = None
) -> tuple[str, DatabaseProfile]:
    """Get active profile name and configuration.

    Returns:
        Tuple of (profile_name, DatabaseProfile)

    Raises:
        ProfileNotFoundError: If no profile configured or not in db.toml
    """
    profile_name = get_active_profile_name(env_prefix)
    config = load_db_config(config_path)

    if profile_name not in config.profiles:
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in db.toml.\n"
            f"Available profiles: {', '.join(config.profiles.keys())}"
        )

    return profile_name, config.profiles[profile_name]


# ============================================================================
# Adapter Construction
# ============================================================================


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted (URL-encoded)
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def infer_provider(database_url: str) -> str:
    """Guess the provider from a URL scheme (``sqlite`` or ``postgres``)."""
    return "sqlite" if database_url.startswith("sqlite") else "postgres"


def create_adapter(database_url: str, provider: str | None = None) -> DatabaseClient:
    """Build the adapter for ``provider`` (inferred from the URL when omitted).

    Raises:
        ValueError: If the provider is not supported.
    """
    provider = provider or infer_provider(database_url)
    if provider == "postgres":
        return AsyncPostgresAdapter(database_url=database_url)
    if provider == "sqlite":
        return AsyncSQLiteAdapter(database_url=database_url)
    raise ValueError(
        f"Unsupported provider '{provider}'. Supported: {', '.join(PROVIDERS)}"
    )


async def get_adapter(
    profile_name: str | None = None,
    env_prefix: str = "",
    database_url: str | None = None,
    config_path: Path | None = None,
) -> DatabaseClient:
    """Create a database adapter.

    A new adapter is created on every call; callers own it and must
    ``await adapter.close()``.

    Args:
        profile_name: Profile from db.toml.  When ``None``, the active
            profile is used.
        env_prefix: Prefix for the profile env var.
        database_url: Direct URL; when given, profiles are ignored.
        config_path: Path to db.toml (default: cwd).

    Raises:
        ProfileNotFoundError: If no profile is configured or found.

    Example:
        >>> adapter = await get_adapter(profile_name="local")
        >>> rows = await adapter.select("users", "user_id")
    """
    if database_url is not None:
        return create_adapter(database_url)

    if profile_name is None:
        profile_name, profile = get_active_profile(env_prefix, config_path)
    else:
        config = load_db_config(config_path)
        if profile_name not in config.profiles:
            raise ProfileNotFoundError(
                f"Profile '{profile_name}' not found in db.toml.\n"
                f"Available profiles: {', '.join(config.profiles.keys())}"
            )
        profile = config.profiles[profile_name]

    return create_adapter(resolve_url(profile), profile.provider)


# ============================================================================
# Connection Check
# ============================================================================


async def connect_and_validate(
    profile_name: str | None = None,
    env_prefix: str = "",
    validate_only: bool = False,
    catalog: BackupSchema = DEFAULT_CATALOG,
    config_path: Path | None = None,
) -> ConnectionResult:
    """Connect to a profile's database and check the backup catalog.

    On success the profile is written to the ``.db-profile`` lock file
    (unless ``validate_only``).  Catalog tables missing from the database
    are reported but do not fail the check: backup and restore skip them.

    Returns:
        ConnectionResult with success status and missing tables

    Example:
        >>> result = await connect_and_validate("local")
        >>> if result.success:
        ...     print(f"Connected to {result.profile_name}")
        ... else:
        ...     print(f"Failed: {result.error}")
    """
    if profile_name is None:
        try:
            profile_name = get_active_profile_name(env_prefix)
        except ProfileNotFoundError as e:
            return ConnectionResult(success=False, error=str(e))

    try:
        config = load_db_config(config_path)
    except FileNotFoundError as e:
        return ConnectionResult(success=False, error=str(e))

    if profile_name not in config.profiles:
        available = ", ".join(config.profiles.keys())
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            error=f"Profile '{profile_name}' not found. Available: {available}",
        )
    profile = config.profiles[profile_name]

    try:
        adapter = create_adapter(resolve_url(profile), profile.provider)
    except ValueError as e:
        return ConnectionResult(success=False, profile_name=profile_name, error=str(e))

    try:
        await adapter.test_connection()
        missing: list[str] = []
        async with adapter.connect() as conn:
            for table in catalog.insert_order:
                if not await adapter.table_exists(conn, table):
                    missing.append(table)
    except Exception as e:
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            error=f"Failed to connect to database: {e}",
        )
    finally:
        await adapter.close()

    if missing:
        logger.warning("Catalog tables missing from %s: %s", profile_name, missing)

    if not validate_only:
        write_profile_lock(profile_name)

    return ConnectionResult(
        success=True,
        profile_name=profile_name,
        missing_tables=missing,
    )
