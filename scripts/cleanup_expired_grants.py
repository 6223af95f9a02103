"""
Sweep expired permission grants from the durable ledger.

Meant for cron / a job scheduler; the engine never schedules this itself.
Run from the repository root:  python -m scripts.cleanup_expired_grants
"""
import sys

from src.config import get_settings
from src.database import close_db, init_db
from src.kernel.permissions.permission_service import create_permission_service
from src.logging_config import configure_logging, get_logger

logger = get_logger("scripts.cleanup_expired_grants")


def main() -> int:
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )
    if settings.rbac_grant_store != "database":
        logger.error("RBAC_GRANT_STORE must be 'database' to sweep a shared ledger")
        return 2

    init_db()
    try:
        service = create_permission_service(settings)
        removed = service.cleanup_expired_grants()
    finally:
        close_db()

    print(f"Removed {removed} expired grant(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
