"""Seed script: creates a demo company, its reporting lines and the "60% Approval" rule.

Idempotent: checks for existing records before inserting.
Run: python scripts/seed.py  (from backend/)
"""
import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import hash_password
from app.db.session import SessionLocal
from app.models.approval_rule import ApprovalRule, RuleType
from app.models.company import Company
from app.models.user import User, UserRole

DEMO_PASSWORD = "changeme123"


# ─── Upsert helpers ───────────────────────────────────────────────────────────

def _upsert_company(db: Session, name: str) -> Company:
    company = db.execute(select(Company).where(Company.name == name)).scalars().first()
    if company:
        print(f"  [skip] Company {name}")
        return company
    company = Company(name=name, currency=settings.DEFAULT_CURRENCY)
    db.add(company)
    db.flush()
    print(f"  [new]  Company {name} ({company.currency})")
    return company


def _upsert_user(
    db: Session,
    company: Company,
    email: str,
    name: str,
    role: UserRole,
    manager: User | None = None,
) -> User:
    user = db.execute(select(User).where(User.email == email)).scalars().first()
    if user:
        print(f"  [skip] User {email}")
        return user
    user = User(
        company_id=company.id,
        email=email,
        name=name,
        password_hash=hash_password(DEMO_PASSWORD),
        role=role,
        manager_id=manager.id if manager else None,
        is_active=True,
    )
    db.add(user)
    db.flush()
    print(f"  [new]  User {email} ({role.value})")
    return user


def _upsert_rule(db: Session, company: Company, name: str, **fields) -> ApprovalRule:
    rule = db.execute(
        select(ApprovalRule).where(ApprovalRule.company_id == company.id, ApprovalRule.name == name)
    ).scalars().first()
    if rule:
        print(f"  [skip] Rule {name}")
        return rule
    rule = ApprovalRule(company_id=company.id, name=name, **fields)
    db.add(rule)
    db.flush()
    print(f"  [new]  Rule {name} ({rule.rule_type.value})")
    return rule


# ─── Main ─────────────────────────────────────────────────────────────────────

def seed() -> None:
    with SessionLocal() as db:
        print("Seeding demo company...")
        company = _upsert_company(db, "Acme Corp")

        admin = _upsert_user(db, company, "admin@example.com", "Admin User", UserRole.ADMIN)
        finance = _upsert_user(db, company, "finance@example.com", "Finance Lead", UserRole.MANAGER, manager=admin)
        manager = _upsert_user(db, company, "manager@example.com", "Team Manager", UserRole.MANAGER, manager=admin)
        _upsert_user(db, company, "employee@example.com", "Employee", UserRole.EMPLOYEE, manager=manager)

        _upsert_rule(
            db, company, "60% Approval",
            rule_type=RuleType.PERCENTAGE,
            percentage_threshold=Decimal("60"),
            min_amount=Decimal("100"),
            is_active=True,
        )
        _upsert_rule(
            db, company, "Finance sign-off above 10k",
            rule_type=RuleType.HYBRID,
            specific_approver_id=finance.id,
            percentage_threshold=Decimal("50"),
            is_manager_first=True,
            min_amount=Decimal("10000"),
            is_active=False,
        )

        db.commit()
    print(f"Done. All demo users share the password '{DEMO_PASSWORD}'.")


if __name__ == "__main__":
    seed()
