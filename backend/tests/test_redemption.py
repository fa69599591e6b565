"""
Tests for reward redemption.

Redemption is one unit: stock claim, coin debit and redemption record all
commit together or not at all.
"""
import re
from uuid import uuid4

import pytest


def _reward(db, cost=100, stock=-1, active=True, partner="Swiggy", name=None):
    from app.models.db_models import RewardCategory, RewardDB

    reward = RewardDB(
        id=str(uuid4()),
        name=name or f"Reward {uuid4().hex[:6]}",
        partner=partner,
        coin_cost=cost,
        category=RewardCategory.FOOD,
        stock=stock,
        active=active,
    )
    db.add(reward)
    db.commit()
    return reward


def _fund(db, user_id, amount):
    from app.services.rewards import Ledger

    Ledger(db).award_coins(user_id, amount, "SLA_BREACH_CITIZEN")


def _stock(db, reward_id):
    from app.models.db_models import RewardDB

    db.expire_all()
    return db.query(RewardDB).filter(RewardDB.id == reward_id).one().stock


class TestRedeem:

    def test_successful_redemption(self, db, make_user):
        from app.models.db_models import RedemptionDB
        from app.services.rewards import RedemptionService

        user = make_user()
        _fund(db, user.id, 250)
        reward = _reward(db, cost=150, stock=5)

        result = RedemptionService(db).redeem(user.id, reward.id)

        assert result["coins_spent"] == 150
        assert result["balance"] == 100
        assert result["partner"] == "Swiggy"
        assert re.fullmatch(r"CL-SWI-[0-9A-F]{10}", result["code"])
        assert _stock(db, reward.id) == 4
        assert db.query(RedemptionDB).filter(RedemptionDB.user_id == user.id).count() == 1

    def test_last_unit_goes_to_one_user(self, db, make_user):
        from app.services.rewards import OutOfStock, RedemptionService

        first, second = make_user(), make_user()
        _fund(db, first.id, 200)
        _fund(db, second.id, 200)
        reward = _reward(db, cost=100, stock=1)
        service = RedemptionService(db)

        service.redeem(first.id, reward.id)
        with pytest.raises(OutOfStock):
            service.redeem(second.id, reward.id)

        assert _stock(db, reward.id) == 0
        assert service.ledger.get_wallet(second.id).balance == 200

    def test_unlimited_stock_never_decrements(self, db, make_user):
        from app.services.rewards import RedemptionService

        user = make_user()
        _fund(db, user.id, 300)
        reward = _reward(db, cost=100, stock=-1)
        service = RedemptionService(db)

        for _ in range(3):
            service.redeem(user.id, reward.id)

        assert _stock(db, reward.id) == -1
        assert service.ledger.get_wallet(user.id).balance == 0

    def test_insufficient_balance_releases_stock(self, db, make_user):
        from app.models.db_models import RedemptionDB
        from app.services.rewards import InsufficientBalance, RedemptionService

        user = make_user()
        _fund(db, user.id, 50)
        reward = _reward(db, cost=100, stock=3)

        with pytest.raises(InsufficientBalance):
            RedemptionService(db).redeem(user.id, reward.id)

        assert _stock(db, reward.id) == 3
        assert db.query(RedemptionDB).count() == 0

    def test_user_without_wallet(self, db, make_user):
        from app.services.rewards import InsufficientBalance, RedemptionService

        user = make_user()
        reward = _reward(db, cost=100)

        with pytest.raises(InsufficientBalance) as exc_info:
            RedemptionService(db).redeem(user.id, reward.id)

        assert exc_info.value.balance == 0

    def test_inactive_reward(self, db, make_user):
        from app.services.rewards import RedemptionService, RewardInactive

        user = make_user()
        _fund(db, user.id, 500)
        reward = _reward(db, active=False)

        with pytest.raises(RewardInactive):
            RedemptionService(db).redeem(user.id, reward.id)

    def test_unknown_reward(self, db, make_user):
        from app.services.rewards import RedemptionService, RewardNotFound

        user = make_user()

        with pytest.raises(RewardNotFound) as exc_info:
            RedemptionService(db).redeem(user.id, str(uuid4()))

        assert exc_info.value.code == "REWARD_NOT_FOUND"


class TestConcurrentRedemption:

    def test_simultaneous_redeem_of_last_unit(self, db, make_user, run_concurrently):
        from app.models.db_models import RedemptionDB
        from app.services.rewards import OutOfStock, RedemptionService

        user_ids = [make_user().id, make_user().id]
        for user_id in user_ids:
            _fund(db, user_id, 200)
        reward_id = _reward(db, cost=100, stock=1).id
        db.rollback()

        outcomes = run_concurrently([
            lambda session, user_id=user_id: RedemptionService(session).redeem(user_id, reward_id)
            for user_id in user_ids
        ])

        successes = [o for o in outcomes if isinstance(o, dict)]
        failures = [o for o in outcomes if not isinstance(o, dict)]
        assert len(successes) == 1
        assert [type(f) for f in failures] == [OutOfStock]
        assert _stock(db, reward_id) == 0
        assert db.query(RedemptionDB).count() == 1
        balances = sorted(RedemptionService(db).ledger.get_wallet(u).balance for u in user_ids)
        assert balances == [100, 200]

    def test_simultaneous_redeem_cannot_overdraw(self, db, make_user, run_concurrently):
        from app.services.rewards import InsufficientBalance, RedemptionService

        user_id = make_user().id
        _fund(db, user_id, 200)
        reward_ids = [_reward(db, cost=150).id, _reward(db, cost=150).id]
        db.rollback()

        outcomes = run_concurrently([
            lambda session, reward_id=reward_id: RedemptionService(session).redeem(user_id, reward_id)
            for reward_id in reward_ids
        ])

        assert sorted(type(o).__name__ for o in outcomes) == ["InsufficientBalance", "dict"]
        assert any(isinstance(o, InsufficientBalance) for o in outcomes)
        db.expire_all()
        assert RedemptionService(db).ledger.get_wallet(user_id).balance == 50


class TestCodes:

    @pytest.mark.parametrize("partner,tag", [
        ("Swiggy", "SWI"),
        ("BookMyShow", "BOO"),
        ("A-1", "A1"),
        ("", "GEN"),
    ])
    def test_partner_tag(self, partner, tag):
        from app.services.rewards.redemption import generate_code

        prefix, partner_tag, suffix = generate_code(partner).split("-")

        assert prefix == "CL"
        assert partner_tag == tag
        assert len(suffix) == 10

    def test_codes_differ(self):
        from app.services.rewards.redemption import generate_code

        codes = {generate_code("Zomato") for _ in range(50)}

        assert len(codes) == 50


class TestCatalog:

    def test_list_rewards_annotated(self, db, catalog, make_user):
        from app.services.rewards import RedemptionService

        user = make_user()
        _fund(db, user.id, 200)

        listing = RedemptionService(db).list_rewards(user.id)

        costs = [r["coin_cost"] for r in listing["rewards"]]
        assert listing["balance"] == 200
        assert costs == sorted(costs)
        for reward in listing["rewards"]:
            assert reward["can_afford"] == (reward["coin_cost"] <= 200)

    def test_filter_by_category(self, db, catalog, make_user):
        from app.services.rewards import RedemptionService

        user = make_user()

        listing = RedemptionService(db).list_rewards(user.id, category="food")

        assert listing["rewards"]
        assert {r["category"] for r in listing["rewards"]} == {"FOOD"}

    def test_unknown_category(self, db, make_user):
        from app.services.rewards import RedemptionService

        with pytest.raises(ValueError):
            RedemptionService(db).list_rewards(make_user().id, category="luxury")

    def test_inactive_rewards_hidden(self, db, make_user):
        from app.services.rewards import RedemptionService

        user = make_user()
        _reward(db, name="Visible")
        _reward(db, name="Retired", active=False)

        names = [r["name"] for r in RedemptionService(db).list_rewards(user.id)["rewards"]]

        assert names == ["Visible"]

    def test_my_redemptions(self, db, make_user):
        from app.services.rewards import RedemptionService

        user = make_user()
        _fund(db, user.id, 300)
        reward = _reward(db, cost=100, name="Coffee")
        service = RedemptionService(db)
        service.redeem(user.id, reward.id)
        service.redeem(user.id, reward.id)

        redemptions = service.list_redemptions(user.id)

        assert len(redemptions) == 2
        assert {r["reward_name"] for r in redemptions} == {"Coffee"}
