"""Tests for reporting-line maintenance."""
import uuid

import pytest

from app.core.exceptions import InvalidInputError, NotFoundError
from app.models.user import UserRole
from app.services.users import assign_manager, get_direct_report_ids
from factories import make_company, make_user


@pytest.fixture
def chain(db):
    """ceo <- vp <- lead <- dev"""
    company = make_company(db)
    ceo = make_user(db, company, UserRole.ADMIN, name="ceo")
    vp = make_user(db, company, UserRole.MANAGER, manager=ceo, name="vp")
    lead = make_user(db, company, UserRole.MANAGER, manager=vp, name="lead")
    dev = make_user(db, company, UserRole.EMPLOYEE, manager=lead, name="dev")
    db.commit()
    return company, ceo, vp, lead, dev


def test_assign_manager(db, chain):
    company, ceo, vp, lead, dev = chain

    updated = assign_manager(db, dev.id, vp.id)

    assert updated.manager_id == vp.id
    assert set(get_direct_report_ids(db, vp.id)) == {lead.id, dev.id}


def test_clear_manager(db, chain):
    _, _, _, _, dev = chain

    assert assign_manager(db, dev.id, None).manager_id is None


def test_self_management_rejected(db, chain):
    _, _, _, lead, _ = chain

    with pytest.raises(InvalidInputError):
        assign_manager(db, lead.id, lead.id)


def test_cycle_rejected(db, chain):
    _, ceo, _, _, dev = chain

    with pytest.raises(InvalidInputError):
        assign_manager(db, ceo.id, dev.id)
    assert ceo.manager_id is None


def test_cross_company_manager_rejected(db, chain):
    _, _, _, _, dev = chain
    outsider = make_user(db, make_company(db, name="Other"), UserRole.MANAGER)

    with pytest.raises(InvalidInputError):
        assign_manager(db, dev.id, outsider.id)


def test_unknown_user_not_found(db, chain):
    _, ceo, _, _, _ = chain

    with pytest.raises(NotFoundError):
        assign_manager(db, uuid.uuid4(), ceo.id)
