"""Counselor lookups shared by the availability and booking services."""

from sqlalchemy.orm import Session

from backend.core.errors import NotFound
from backend.models.user import ROLE_COUNSELOR, User


def get_counselor(db: Session, counselor_id: int, lock: bool = False) -> User:
    """Return the counselor, optionally taking a row lock for the rest of the transaction.

    The lock serializes booking creation and availability edits for a single
    counselor on databases that support ``SELECT ... FOR UPDATE``.
    """
    query = db.query(User).filter(User.id == counselor_id, User.role == ROLE_COUNSELOR)
    if lock:
        query = query.with_for_update()

    counselor = query.first()
    if counselor is None:
        raise NotFound('Counselor not found.')
    return counselor


def list_counselors(
    db: Session,
    specialization: str | None = None,
    min_experience: int | None = None,
) -> list[User]:
    query = db.query(User).filter(User.role == ROLE_COUNSELOR, User.is_approved.is_(True))

    if specialization:
        query = query.filter(User.specialization.ilike(f'%{specialization.strip()}%'))
    if min_experience is not None:
        query = query.filter(User.experience >= min_experience)

    return query.order_by(User.name.asc(), User.id.asc()).all()
