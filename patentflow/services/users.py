import logging
from typing import List, Optional

from sqlalchemy import exc as sa_exc
from sqlmodel import Session, select

from patentflow.core.errors import RecordNotFound, ValidationFailed
from patentflow.core.security import get_password_hash, verify_password
from patentflow.db.guard import store_guard
from patentflow.models.user import Role, User
from patentflow.schemas.user import BulkUserError, BulkUserResult, UserCreate, UserUpdate

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password."


def normalise_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.exec(select(User).where(User.email == normalise_email(email))).first()


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise RecordNotFound("The user with this id does not exist in the system")
    return user


def list_users(db: Session, role: Optional[Role] = None) -> List[User]:
    users = db.exec(select(User).order_by(User.name)).all()
    if role is None:
        return list(users)
    # Roles live in a JSON column, so filter in Python
    return [user for user in users if role in user.roles]


def authenticate(db: Session, email: str, password: str) -> User:
    """
    Check credentials.

    Raises the same ValidationFailed whether the email is unknown or the
    password is wrong, so callers cannot probe for accounts.
    """
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password):
        raise ValidationFailed(INVALID_CREDENTIALS)
    return user


def _build_user(user_in: UserCreate) -> User:
    return User(
        email=normalise_email(user_in.email),
        password=get_password_hash(user_in.password),
        name=user_in.name.strip(),
        roles=[Role(role).value for role in user_in.roles],
    )


def create_user(db: Session, user_in: UserCreate) -> User:
    if get_user_by_email(db, user_in.email):
        raise ValidationFailed("The user with this email already exists in the system.", field="email")
    db_user = _build_user(user_in)
    with store_guard(db, "create_user"):
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
    logger.info("Created user %s with roles %s", db_user.email, db_user.roles)
    return db_user


def create_users_bulk(db: Session, users_in: List[UserCreate]) -> BulkUserResult:
    """
    Create several users, each in its own transaction.

    Unlike project batches this is not all-or-nothing: every rejected user is
    reported with its email and reason, the rest are created.
    """
    added = 0
    errors: List[BulkUserError] = []
    for user_in in users_in:
        if get_user_by_email(db, user_in.email):
            errors.append(BulkUserError(email=user_in.email, error="User already exists."))
            continue
        try:
            db.add(_build_user(user_in))
            db.commit()
            added += 1
        except sa_exc.SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Bulk user creation failed for %s: %s", user_in.email, exc)
            errors.append(BulkUserError(email=user_in.email, error="Could not be saved."))
    return BulkUserResult(added_count=added, errors=errors)


def update_user(db: Session, user_id: str, user_in: UserUpdate) -> User:
    db_user = get_user(db, user_id)
    update_data = user_in.model_dump(exclude_unset=True)

    if "password" in update_data:
        password = update_data.pop("password")
        if password:
            db_user.password = get_password_hash(password)
    if "email" in update_data and update_data["email"]:
        email = normalise_email(update_data.pop("email"))
        other = get_user_by_email(db, email)
        if other and other.id != db_user.id:
            raise ValidationFailed("The user with this email already exists in the system.", field="email")
        db_user.email = email
    if update_data.get("roles") is not None:
        db_user.roles = [Role(role).value for role in update_data.pop("roles")]
    if update_data.get("name"):
        db_user.name = update_data.pop("name").strip()

    with store_guard(db, "update_user"):
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
    return db_user
