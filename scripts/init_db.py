import sys
from pathlib import Path
import os

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.registry.constants import ROLE_ADMIN
from app.registry.models import Base, User
from app.registry.security import hash_password
from scripts._db_utils import script_session


def seed_only(*, database_url: str | None = None, create_tables: bool = False) -> None:
    """
    Seed the initial admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_username = (os.environ.get("ADMIN_USERNAME") or "admin").strip()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///stakeholders.db").strip()

    with script_session(db_url) as s:
        if create_tables:
            Base.metadata.create_all(bind=s.get_bind())

        user = s.query(User).filter(User.username == admin_username).one_or_none()
        if not user:
            user = User(username=admin_username, password_hash=hash_password(admin_password), role=ROLE_ADMIN)
            s.add(user)
            print(f"Created admin user '{admin_username}'.")
        elif user.role != ROLE_ADMIN:
            user.role = ROLE_ADMIN
            print(f"Promoted existing user '{admin_username}' to admin.")

    print("Initialized database (seed_only).")
    print(f"Admin username: {admin_username}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    # Local/dev convenience: `python scripts/init_db.py --create-tables` skips alembic.
    seed_only(database_url=None, create_tables="--create-tables" in sys.argv[1:])


if __name__ == "__main__":
    main()
