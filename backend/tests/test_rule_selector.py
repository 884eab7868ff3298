"""Tests for approval rule selection by amount range."""
from decimal import Decimal
from types import SimpleNamespace

from app.models.approval_rule import RuleType
from app.services.rule_selector import pick_rule, rule_matches_amount, select_rule
from factories import make_company, make_rule


def _rule(min_amount=None, max_amount=None, is_active=True, name="r"):
    return SimpleNamespace(
        name=name,
        min_amount=Decimal(min_amount) if min_amount is not None else None,
        max_amount=Decimal(max_amount) if max_amount is not None else None,
        is_active=is_active,
    )


# ─── Pure matching ────────────────────────────────────────────────────────────

def test_bounds_are_inclusive():
    rule = _rule("100", "500")
    assert rule_matches_amount(rule, Decimal("100"))
    assert rule_matches_amount(rule, Decimal("500"))
    assert not rule_matches_amount(rule, Decimal("99.99"))
    assert not rule_matches_amount(rule, Decimal("500.01"))


def test_missing_bounds_are_unbounded():
    assert rule_matches_amount(_rule(), Decimal("0"))
    assert rule_matches_amount(_rule(min_amount="100"), Decimal("1000000"))
    assert rule_matches_amount(_rule(max_amount="100"), Decimal("0.01"))


def test_pick_rule_returns_first_match_and_skips_inactive():
    inactive = _rule(is_active=False, name="inactive")
    narrow = _rule("1000", None, name="narrow")
    wide = _rule(name="wide")
    late = _rule(name="late")

    assert pick_rule([inactive, narrow, wide, late], Decimal("50")).name == "wide"
    assert pick_rule([inactive, narrow, wide, late], Decimal("5000")).name == "narrow"


def test_pick_rule_none_when_nothing_matches():
    assert pick_rule([_rule("100", "200")], Decimal("50")) is None
    assert pick_rule([], Decimal("50")) is None


# ─── Database selection ───────────────────────────────────────────────────────

def test_select_rule_earliest_created_match_wins(db):
    company = make_company(db)
    small = make_rule(db, company, order=1, percentage_threshold="50", max_amount="1000", name="small")
    large = make_rule(db, company, order=2, percentage_threshold="60", min_amount="500", name="large")

    assert select_rule(db, company.id, Decimal("750")).id == small.id
    assert select_rule(db, company.id, Decimal("1000")).id == small.id
    assert select_rule(db, company.id, Decimal("1000.01")).id == large.id


def test_select_rule_ignores_inactive_and_other_companies(db):
    company = make_company(db)
    other = make_company(db, name="Other")
    make_rule(db, other, order=0, percentage_threshold="50", name="foreign")
    make_rule(db, company, order=1, percentage_threshold="50", is_active=False, name="off")
    active = make_rule(db, company, order=2, percentage_threshold="60", min_amount="100", name="on")

    assert select_rule(db, company.id, Decimal("150")).id == active.id
    assert select_rule(db, company.id, Decimal("50")) is None


def test_select_rule_creation_order_beats_insert_order(db):
    company = make_company(db)
    make_rule(db, company, order=5, rule_type=RuleType.PERCENTAGE, percentage_threshold="50", name="newer")
    older = make_rule(db, company, order=1, rule_type=RuleType.PERCENTAGE, percentage_threshold="75", name="older")

    assert select_rule(db, company.id, Decimal("10")).id == older.id
