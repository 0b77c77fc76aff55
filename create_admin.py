import sys
import argparse
from getpass import getpass

from app.database import SessionLocal, Base, engine
from app.models.farm import User, UserRole
from app.models import device, sensor, alert  # noqa: F401  register tables
from app.core.security import get_password_hash
from app.api.endpoints.users import purge_user


def create_admin_user(db_session, user_name, email, password, recreate=False):
    """Creates an admin user, optionally deleting an existing one first."""

    existing_user = db_session.query(User).filter(User.email == email).first()

    if existing_user:
        if recreate:
            print(f"Found existing user '{existing_user.email}'. Deleting before recreation.")
            purge_user(existing_user, db_session)
            db_session.commit()
        else:
            print(f"Error: User with email '{email}' already exists.")
            print("Use the --recreate flag to delete the existing user first.")
            return None

    admin_user = User(
        user_name=user_name,
        email=email,
        hashed_password=get_password_hash(password),
        role=UserRole.ADMIN,
        is_active=True,
    )

    db_session.add(admin_user)
    db_session.commit()

    print(f"Successfully created admin user '{user_name}' with email '{email}'.")
    return admin_user


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or recreate an admin user.")
    parser.add_argument("--name", required=True, help="Display name for the new admin.")
    parser.add_argument("--email", required=True, help="Email for the new admin.")
    parser.add_argument(
        "--recreate",
        action="store_true",
        help="If the user already exists, delete them before creating the new admin."
    )

    args = parser.parse_args()

    password = getpass("Enter password for the new admin: ")
    password_confirm = getpass("Confirm password: ")

    if password != password_confirm:
        print("Error: Passwords do not match.")
        sys.exit(1)

    if len(password) < 8:
        print("Error: Password must be at least 8 characters.")
        sys.exit(1)

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        create_admin_user(db, args.name, args.email.lower(), password, recreate=args.recreate)
    finally:
        db.close()
