from decimal import Decimal

import pytest

from reviewguard.shared.db_models import (
    Creator, CreatorStatus, ReviewStatus, TransactionStatus, TransactionType, WalletTransaction,
)
from reviewguard.shared.errors import DependencyError, NotFound, ValidationError
from reviewguard.worker.agents.antifraud import ledger
from reviewguard.worker.agents.antifraud.decisions import decide_creator, decide_review

from factories import make_creator, make_profile, make_review, make_reward, make_setting, reload_profile


class SettingsOnlyStore:
    def __init__(self, value=None, fail=False):
        self.value = value
        self.fail = fail

    def get_setting(self, key):
        if self.fail:
            raise DependencyError("get_setting")
        return self.value


@pytest.mark.parametrize("raw,expected", [
    (None, Decimal("0.20")),
    ("0.35", Decimal("0.35")),
    ('"0.35"', Decimal("0.35")),
    ("not a number", Decimal("0.20")),
])
def test_review_reward_parsing(raw, expected):
    assert ledger.review_reward(SettingsOnlyStore(raw)) == expected


def test_reward_lookup_failure_uses_default():
    assert ledger.creator_bonus(SettingsOnlyStore(fail=True)) == Decimal("1.00")


def test_bump_uses_integer_division(db, store):
    make_profile(db, "u1", risk_score=10)
    assert ledger.bump_risk_score(store, "u1", 49, 10) == 14
    assert ledger.bump_risk_score(store, "u1", 9, 10) is None


def test_review_outcome_moves_money_once(db, store):
    make_profile(db, "u1", pending=Decimal("0.20"))
    r = make_review(db, "u1", make_creator(db, "Target"))
    make_reward(db, "u1", r.id)

    assert ledger.apply_review_outcome(store, r.id, "u1", True, Decimal("0.20")) is True
    assert ledger.apply_review_outcome(store, r.id, "u1", True, Decimal("0.20")) is False
    store.commit()

    profile = reload_profile(db, "u1")
    assert profile.pending_balance == Decimal("0.00")
    assert profile.available_balance == Decimal("0.20")


def test_review_outcome_without_ledger_row_falls_back_to_configured_amount(db, store):
    make_profile(db, "u1", pending=Decimal("0.10"))
    r = make_review(db, "u1", make_creator(db, "Target"))

    assert ledger.apply_review_outcome(store, r.id, "u1", False, Decimal("0.20")) is True
    store.commit()

    db.expire_all()
    assert store.get_review(r.id).status == ReviewStatus.rejected.value
    assert reload_profile(db, "u1").pending_balance == Decimal("0.00")


def test_settlement_uses_the_ledger_row_amount(db, store):
    make_profile(db, "u1", pending=Decimal("0.30"))
    r = make_review(db, "u1", make_creator(db, "Target"))
    make_reward(db, "u1", r.id, amount=Decimal("0.20"))

    assert ledger.apply_review_outcome(store, r.id, "u1", True, Decimal("0.50")) is True
    store.commit()

    profile = reload_profile(db, "u1")
    assert profile.pending_balance == Decimal("0.10")
    assert profile.available_balance == Decimal("0.20")


def test_ledger_transition_returns_moved_amount(db, store):
    r = make_review(db, "u1", make_creator(db, "Target"))
    make_reward(db, "u1", r.id, amount=Decimal("0.25"))

    args = (r.id, "review", TransactionType.review_reward)
    assert store.has_ledger_entry(*args) is True
    assert store.set_ledger_entry_status(*args, TransactionStatus.approved) == Decimal("0.25")
    assert store.set_ledger_entry_status(*args, TransactionStatus.approved) is None
    assert store.has_ledger_entry("other", "review", TransactionType.review_reward) is False


# ---- admin decisions ----

def test_admin_approves_held_review(db, store):
    make_profile(db, "u1", pending=Decimal("0.20"))
    r = make_review(db, "u1", make_creator(db, "Target"))
    make_reward(db, "u1", r.id)

    result = decide_review(store, r.id, approve=True)

    assert result == {"id": r.id, "kind": "review", "status": "approved", "reward_moved": True}
    assert reload_profile(db, "u1").available_balance == Decimal("0.20")
    with pytest.raises(ValidationError):
        decide_review(store, r.id, approve=False)


def test_admin_decision_on_unknown_review(store):
    with pytest.raises(NotFound):
        decide_review(store, "missing", approve=True)


def test_admin_approves_creator_with_bonus(db, store):
    make_profile(db, "u1", pending=Decimal("1.00"))
    make_setting(db, "creator_bonus", "1.00")
    c = make_creator(db, "New Face", status=CreatorStatus.pending, added_by="u1")
    make_reward(db, "u1", c.id, reference_type="creator", amount=Decimal("1.00"))

    result = decide_creator(store, c.id, approve=True)

    assert result["status"] == "active"
    assert result["reward_moved"] is True
    db.expire_all()
    assert db.get(Creator, c.id).status == CreatorStatus.active
    assert db.query(WalletTransaction).one().status == TransactionStatus.approved
    profile = reload_profile(db, "u1")
    assert profile.pending_balance == Decimal("0.00")
    assert profile.available_balance == Decimal("1.00")


def test_admin_rejects_creator(db, store):
    make_profile(db, "u1", pending=Decimal("1.00"))
    c = make_creator(db, "New Face", status=CreatorStatus.pending, added_by="u1")
    make_reward(db, "u1", c.id, reference_type="creator", amount=Decimal("1.00"))

    result = decide_creator(store, c.id, approve=False)

    assert result["status"] == "rejected"
    profile = reload_profile(db, "u1")
    assert profile.pending_balance == Decimal("0.00")
    assert profile.available_balance == Decimal("0.00")


def test_admin_cannot_decide_active_creator(db, store):
    c = make_creator(db, "Old Face")
    with pytest.raises(ValidationError):
        decide_creator(store, c.id, approve=False)


def test_admin_creator_decision_pays_the_recorded_bonus(db, store):
    make_profile(db, "u1", pending=Decimal("1.00"))
    make_setting(db, "creator_bonus", "2.50")
    c = make_creator(db, "New Face", status=CreatorStatus.pending, added_by="u1")
    make_reward(db, "u1", c.id, reference_type="creator", amount=Decimal("1.00"))

    decide_creator(store, c.id, approve=True)

    profile = reload_profile(db, "u1")
    assert profile.pending_balance == Decimal("0.00")
    assert profile.available_balance == Decimal("1.00")
