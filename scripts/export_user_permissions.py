"""
Print a user's effective permissions as JSON (audit / debugging aid).

Usage:  python -m scripts.export_user_permissions <user_id> <role>
"""
import json
import sys

from src.config import get_settings
from src.database import close_db, init_db
from src.kernel.identity.principal import User
from src.kernel.permissions.permission_service import create_permission_service


def main(argv: list) -> int:
    if len(argv) != 2:
        print(__doc__.strip())
        return 2
    user_id, role = argv

    settings = get_settings()
    if settings.rbac_grant_store == "database":
        init_db()
    try:
        service = create_permission_service(settings)
        snapshot = service.export_user_permissions(User(id=user_id, role=role))
    finally:
        if settings.rbac_grant_store == "database":
            close_db()

    print(json.dumps(snapshot.model_dump(mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
