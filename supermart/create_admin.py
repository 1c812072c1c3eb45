"""One-time script to create the first admin employee.

Usage:
    python -m supermart.create_admin
"""

from __future__ import annotations

import getpass

from sqlalchemy import func

from supermart.app.core.database import SessionLocal, init_db
from supermart.app.core.security import get_password_hash, validate_password_strength
from supermart.app.models.user import RoleEnum, User


def main() -> None:
    username = input("Username [admin]: ").strip() or "admin"
    full_name = input("Full name [Store Admin]: ").strip() or "Store Admin"
    employee_id = input("Employee ID [EMP001]: ").strip() or "EMP001"
    password = getpass.getpass("Password: ")
    if not password:
        print("Error: password cannot be empty.")
        return
    pw_error = validate_password_strength(password)
    if pw_error:
        print(f"Error: {pw_error}")
        return

    init_db()
    db = SessionLocal()
    try:
        existing = db.query(User).filter(
            func.lower(User.username) == username.lower()
        ).first()
        if existing:
            # Reset password, unlock and re-activate
            existing.hashed_password = get_password_hash(password)
            existing.role = RoleEnum.ADMIN
            existing.is_active = True
            existing.failed_login_attempts = 0
            existing.locked_until = None
            db.commit()
            print("Admin user already exists, password reset.")
            print(f"  ID:       {existing.id}")
            print(f"  Username: {username}")
            return

        if db.query(User).filter(User.employee_id == employee_id).first():
            print(f"Error: employee ID {employee_id} is already in use.")
            return

        user = User(
            username=username,
            full_name=full_name,
            employee_id=employee_id,
            hashed_password=get_password_hash(password),
            role=RoleEnum.ADMIN,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        print("Admin user created successfully!")
        print(f"  ID:          {user.id}")
        print(f"  Username:    {username}")
        print(f"  Employee ID: {employee_id}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
