from typing import Optional
from sqlalchemy.orm import Session
from marketplace.core.exceptions import ConflictError
from marketplace.models.identity import Company, User


def ensure_unique_user_email(db: Session, email: Optional[str]) -> None:
    if not email:
        return
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("A user with this email already exists")


def ensure_unique_company_email(db: Session, email: Optional[str]) -> None:
    if not email:
        return
    if db.query(Company).filter(Company.email == email).first():
        raise ConflictError("A company with this email already exists")


def ensure_company_has_capacity(db: Session, company: Company) -> None:
    members = db.query(User).filter(User.company_id == company.id).count()
    if members >= company.max_users:
        raise ConflictError(f"Company has reached its limit of {company.max_users} users")
