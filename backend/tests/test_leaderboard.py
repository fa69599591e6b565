"""
Tests for the leaderboard and the accountability profile.
"""
import pytest


def _earn(db, user_id, amount):
    from app.services.rewards import Ledger

    Ledger(db).award_coins(user_id, amount, "SLA_BREACH_CITIZEN")


class TestClampPagination:

    @pytest.mark.parametrize("page,limit,expected", [
        (1, 20, (1, 20)),
        (0, 20, (1, 20)),
        (-3, 0, (1, 1)),
        (2, 500, (2, 50)),
    ])
    def test_bounds(self, page, limit, expected):
        from app.services.rewards import clamp_pagination

        assert clamp_pagination(page, limit) == expected


class TestLeaderboard:

    def test_ordering_and_global_ranks(self, db, make_user):
        from app.services.rewards import LeaderboardService

        users = [make_user(name=f"citizen-{i}") for i in range(5)]
        for user, coins in zip(users, (50, 300, 120, 10, 75)):
            _earn(db, user.id, coins)
        service = LeaderboardService(db)

        page_one = service.rank(page=1, limit=2)
        page_two = service.rank(page=2, limit=2)

        assert page_one["total"] == 5
        assert page_one["total_pages"] == 3
        assert [e["total_coins"] for e in page_one["entries"]] == [300, 120]
        assert [e["rank"] for e in page_two["entries"]] == [3, 4]
        assert [e["total_coins"] for e in page_two["entries"]] == [75, 50]

    def test_spending_does_not_lower_rank(self, db, make_user):
        from app.services.rewards import LeaderboardService, Ledger

        spender, saver = make_user(), make_user()
        _earn(db, spender.id, 200)
        _earn(db, saver.id, 150)
        Ledger(db).deduct_coins(spender.id, 180, "REWARD_REDEEMED")

        entries = LeaderboardService(db).rank()["entries"]

        assert entries[0]["user_id"] == spender.id
        assert entries[0]["current_balance"] == 20

    def test_excludes_zero_earners_and_authorities(self, db, make_user):
        from app.models.db_models import UserRole
        from app.services.rewards import LeaderboardService, Ledger

        citizen = make_user()
        idle = make_user()
        authority = make_user(role=UserRole.AUTHORITY)
        _earn(db, citizen.id, 10)
        _earn(db, authority.id, 500)
        Ledger(db).get_or_create_wallet(idle.id)

        board = LeaderboardService(db).rank()

        assert [e["user_id"] for e in board["entries"]] == [citizen.id]

    def test_city_and_state_scope(self, db, make_user):
        from app.services.rewards import LeaderboardService

        delhi = make_user(city="New Delhi", state="Delhi")
        pune = make_user(city="Pune", state="Maharashtra")
        mumbai = make_user(city="Mumbai", state="Maharashtra")
        for user in (delhi, pune, mumbai):
            _earn(db, user.id, 40)
        service = LeaderboardService(db)

        city = service.rank(scope="city", city="Pune")
        state = service.rank(scope="state", state="Maharashtra")

        assert [e["user_id"] for e in city["entries"]] == [pune.id]
        assert {e["user_id"] for e in state["entries"]} == {pune.id, mumbai.id}
        assert service.rank(scope="all")["total"] == 3

    def test_unknown_scope(self, db):
        from app.services.rewards import LeaderboardService

        with pytest.raises(ValueError):
            LeaderboardService(db).rank(scope="galaxy")

    def test_my_rank_with_ties(self, db, make_user):
        from app.services.rewards import LeaderboardService

        top, tied_a, tied_b, last = (make_user() for _ in range(4))
        for user, coins in ((top, 100), (tied_a, 60), (tied_b, 60), (last, 5)):
            _earn(db, user.id, coins)
        service = LeaderboardService(db)

        assert service.my_rank(top.id) == 1
        assert service.my_rank(tied_a.id) == 2
        assert service.my_rank(tied_b.id) == 2
        assert service.my_rank(last.id) == 4

    def test_unranked(self, db, make_user):
        from app.services.rewards import LeaderboardService

        assert LeaderboardService(db).my_rank(make_user().id) is None

    @pytest.mark.parametrize("scope", ["city", "state"])
    def test_scope_without_filter_value(self, db, scope):
        from app.services.rewards import LeaderboardScopeError, LeaderboardService

        service = LeaderboardService(db)

        with pytest.raises(LeaderboardScopeError):
            service.rank(scope=scope)
        with pytest.raises(LeaderboardScopeError):
            service.my_rank("anyone", scope=scope)

    def test_non_citizens_are_unranked(self, db, make_user):
        from app.models.db_models import UserRole
        from app.services.rewards import LeaderboardService

        officer = make_user(role=UserRole.AUTHORITY)
        admin = make_user(role=UserRole.ADMIN)
        _earn(db, officer.id, 80)
        _earn(db, admin.id, 80)
        service = LeaderboardService(db)

        assert service.my_rank(officer.id) is None
        assert service.my_rank(admin.id) is None
        assert service.rank()["total"] == 0

    def test_my_rank_outside_scope(self, db, make_user):
        from app.services.rewards import LeaderboardService

        pune = make_user(city="Pune", state="Maharashtra")
        _earn(db, pune.id, 30)
        service = LeaderboardService(db)

        assert service.my_rank(pune.id, scope="city", city="Pune") == 1
        assert service.my_rank(pune.id, scope="city", city="Mumbai") is None

    def test_entries_carry_badges(self, db, catalog, make_user):
        from app.services.complaints import ComplaintService
        from app.services.rewards import LeaderboardService

        citizen = make_user()
        ComplaintService(db).submit(
            citizen_id=citizen.id, category="Garbage",
            latitude=12.97, longitude=77.59, severity="LOW",
        )

        entry = LeaderboardService(db).rank()["entries"][0]

        assert entry["total_coins"] == 30
        assert [b["slug"] for b in entry["badges"]] == ["first-reporter"]


class TestProfile:

    def test_profile(self, db, catalog, make_user):
        from app.services.complaints import ComplaintService
        from app.services.rewards import ProfileService

        citizen = make_user(name="Asha")
        authority = make_user()
        service = ComplaintService(db)
        first = service.submit(
            citizen_id=citizen.id, category="Garbage",
            latitude=12.97, longitude=77.59, severity="HIGH",
        )
        service.submit(
            citizen_id=citizen.id, category="Streetlight",
            latitude=12.97, longitude=77.59, severity="LOW",
        )
        service.update_status(first["complaint"]["id"], "RESOLVED", actor_id=authority.id)

        profile = ProfileService(db).get_profile(citizen.id)

        # 10 + 20 first + 10, then 15 resolved + 25 within SLA
        assert profile["coins"] == {"balance": 80, "total_earned": 80}
        assert profile["complaint_stats"] == {"total": 2, "resolved": 1, "pending": 1, "breached": 0}
        assert profile["rank"] == 1
        assert profile["user"]["name"] == "Asha"
        assert len(profile["transactions"]) == 5
        assert profile["redemptions"] == []

    def test_unknown_user(self, db):
        from app.services.rewards import ProfileService

        assert ProfileService(db).get_profile("missing") is None

    def test_wallet_read_does_not_create(self, db, make_user):
        from app.services.rewards import Ledger, ProfileService

        user = make_user()

        assert ProfileService(db).get_wallet(user.id) == {"balance": 0, "total_earned": 0, "transactions": []}
        assert Ledger(db).get_wallet(user.id) is None
