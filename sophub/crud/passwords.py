# sophub/crud/passwords.py
from sqlalchemy.orm import Session

from sophub.core.security import get_password_hash, validate_new_password, verify_password
from sophub.models.user import User


def change_password(
    db: Session,
    user: User,
    current_password: str,
    new_password: str,
    confirm_password: str,
) -> None:
    # policy first: a mismatch or short password never reaches the database
    validate_new_password(new_password, confirm_password)
    if not verify_password(current_password, user.hashed_password):
        raise ValueError("Current password is incorrect")
    user.hashed_password = get_password_hash(new_password)
    db.add(user)
    db.commit()
