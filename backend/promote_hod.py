"""Grant the HOD (approver) role to an existing user.

Usage:
    python -m backend.promote_hod <username>
"""
import sys

from sqlalchemy.orm import Session

from backend.database import SessionLocal
from backend.models.user import ROLE_HOD, User


def promote(db: Session, username: str) -> bool:
    user = db.query(User).filter(User.username == username.strip().lower()).first()
    if user is None:
        return False
    user.role = ROLE_HOD
    db.commit()
    return True


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print(__doc__.strip(), file=sys.stderr)
        sys.exit(2)

    db = SessionLocal()
    try:
        promoted = promote(db, args[0])
    finally:
        db.close()

    if not promoted:
        print(f"User not found: {args[0]}", file=sys.stderr)
        sys.exit(1)
    print(f"{args[0]} is now HOD")


if __name__ == "__main__":
    main()
