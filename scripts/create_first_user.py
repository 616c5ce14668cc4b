import os
import sys

from sqlmodel import Session

# Add current directory to path
sys.path.append(os.getcwd())

from patentflow.core.errors import ValidationFailed
from patentflow.db.session import engine, init_db
from patentflow.models.user import Role
from patentflow.schemas.user import UserCreate
from patentflow.services.users import create_user, get_user_by_email


def create_initial_user():
    print("--- Initial User Creation ---")

    email = os.getenv("FIRST_ADMIN_EMAIL", "admin@example.com")
    password = os.getenv("FIRST_ADMIN_PASSWORD", "adminpassword")
    name = os.getenv("FIRST_ADMIN_NAME", "Administrator")

    # The bootstrap account can manage users and also allocate work
    roles = [Role.ADMIN, Role.MANAGER]

    init_db()
    with Session(engine) as session:
        if get_user_by_email(session, email):
            print(f"User with email {email} already exists.")
            return

        print(f"Creating user {email}...")
        try:
            user = create_user(session, UserCreate(email=email, name=name, password=password, roles=roles))
        except ValidationFailed as exc:
            print(f"Could not create user: {exc.message}")
            sys.exit(1)
        print("Initial user created successfully!")
        print(f"Email: {user.email}")
        print(f"Roles: {[r.value for r in roles]}")
        if "FIRST_ADMIN_PASSWORD" not in os.environ:
            print("Default password in use: change it after the first login.")


if __name__ == "__main__":
    create_initial_user()
