"""
Subscription DAO Tests.

WHAT: Tests for the subscription, organization and usage DAOs used by
webhook processing.

WHY: The DAOs carry two guarantees billing relies on:
1. The Stripe subscription ID is unique, so duplicates fail loudly
2. Updates touch only the named columns
"""

from datetime import date, datetime

import pytest
from sqlalchemy.exc import IntegrityError

from saas_backend.dao.organization import OrganizationDAO, OrganizationMemberDAO
from saas_backend.dao.subscription import SubscriptionDAO
from saas_backend.dao.usage import UsagePeriodDAO
from saas_backend.dao.user import UserDAO
from saas_backend.models.organization import OrganizationPlan, OrganizationRole
from saas_backend.models.subscription import Subscription, SubscriptionStatus
from tests.factories import (
    OrganizationFactory,
    OrganizationMemberFactory,
    SubscriptionFactory,
    UserFactory,
)


class TestSubscriptionDAO:
    """Tests for SubscriptionDAO."""

    @pytest.mark.asyncio
    async def test_create_and_lookup(self, db_session):
        user = await UserFactory.create(db_session)
        dao = SubscriptionDAO(db_session)

        created = await dao.create_from_stripe(
            user_id=user.id,
            stripe_subscription_id="sub_abc",
            stripe_price_id="price_pro",
            status="trialing",
        )

        found = await dao.get_by_stripe_subscription_id("sub_abc")
        assert found is not None
        assert found.id == created.id
        assert found.status == "trialing"
        assert found.organization_id is None
        assert found.cancel_at_period_end is False

    @pytest.mark.asyncio
    async def test_lookup_missing_or_empty(self, db_session):
        dao = SubscriptionDAO(db_session)
        assert await dao.get_by_stripe_subscription_id("sub_nope") is None
        assert await dao.get_by_stripe_subscription_id("") is None

    @pytest.mark.asyncio
    async def test_duplicate_stripe_id_raises(self, db_session):
        user = await UserFactory.create(db_session)
        await SubscriptionFactory.create(db_session, user, stripe_subscription_id="sub_dup")
        user_id = user.id

        with pytest.raises(IntegrityError):
            await SubscriptionDAO(db_session).create_from_stripe(
                user_id=user_id,
                stripe_subscription_id="sub_dup",
                stripe_price_id="price_pro",
                status="active",
            )
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_update_from_stripe_event(self, db_session):
        user = await UserFactory.create(db_session)
        sub = await SubscriptionFactory.create(db_session, user)
        start = datetime(2026, 1, 1)
        end = datetime(2026, 2, 1)

        updated = await SubscriptionDAO(db_session).update_from_stripe_event(
            sub,
            status="past_due",
            stripe_price_id="price_enterprise",
            current_period_start=start,
            current_period_end=end,
            cancel_at_period_end=True,
        )

        assert updated.status == "past_due"
        assert updated.stripe_price_id == "price_enterprise"
        assert updated.current_period_end == end
        assert updated.cancel_at_period_end is True
        assert updated.canceled_at is None

    @pytest.mark.asyncio
    async def test_update_keeps_earlier_canceled_at(self, db_session):
        """
        WHY: A later update without canceled_at must not erase it.
        """
        user = await UserFactory.create(db_session)
        sub = await SubscriptionFactory.create(db_session, user)
        dao = SubscriptionDAO(db_session)
        canceled = datetime(2026, 3, 1, 12, 0)

        await dao.update_from_stripe_event(
            sub, "active", "price_pro", None, None, True, canceled_at=canceled
        )
        updated = await dao.update_from_stripe_event(sub, "active", "price_pro", None, None, True)

        assert updated.canceled_at == canceled

    @pytest.mark.asyncio
    async def test_mark_canceled_keeps_row(self, db_session):
        user = await UserFactory.create(db_session)
        sub = await SubscriptionFactory.create(db_session, user, stripe_subscription_id="sub_c")
        dao = SubscriptionDAO(db_session)

        await dao.mark_canceled(sub)
        await db_session.commit()

        row = await dao.get_by_stripe_subscription_id("sub_c")
        assert row.status == SubscriptionStatus.CANCELED.value
        assert row.canceled_at is not None
        assert row.stripe_price_id == "price_pro"

    @pytest.mark.asyncio
    async def test_mark_past_due(self, db_session):
        user = await UserFactory.create(db_session)
        sub = await SubscriptionFactory.create(db_session, user)

        updated = await SubscriptionDAO(db_session).mark_past_due(sub)

        assert updated.status == "past_due"
        assert updated.grants_access is True


class TestSubscriptionModel:
    """Tests for Subscription helpers."""

    def test_organization_owned(self):
        assert Subscription(organization_id=3).is_organization_owned is True
        assert Subscription(organization_id=None).is_organization_owned is False

    @pytest.mark.parametrize(
        "status,expected",
        [("active", True), ("trialing", True), ("past_due", True), ("canceled", False),
         ("unpaid", False), ("incomplete", False)],
    )
    def test_grants_access(self, status, expected):
        assert Subscription(status=status).grants_access is expected


class TestCustomerLookups:
    """Tests for Stripe customer lookups on users and organizations."""

    @pytest.mark.asyncio
    async def test_user_by_customer(self, db_session):
        user = await UserFactory.create(db_session, stripe_customer_id="cus_u")
        found = await UserDAO(db_session).get_by_stripe_customer_id("cus_u")
        assert found.id == user.id

    @pytest.mark.asyncio
    async def test_empty_customer_never_matches(self, db_session):
        await UserFactory.create(db_session, stripe_customer_id=None)
        assert await UserDAO(db_session).get_by_stripe_customer_id("") is None
        assert await OrganizationDAO(db_session).get_by_stripe_customer_id("") is None

    @pytest.mark.asyncio
    async def test_organization_by_customer(self, db_session):
        org = await OrganizationFactory.create(db_session, stripe_customer_id="cus_o")
        found = await OrganizationDAO(db_session).get_by_stripe_customer_id("cus_o")
        assert found.id == org.id


class TestOrganizationDAO:
    """Tests for organization plan changes."""

    @pytest.mark.asyncio
    async def test_apply_plan(self, db_session):
        org = await OrganizationFactory.create(db_session)

        updated = await OrganizationDAO(db_session).apply_plan(
            org, OrganizationPlan.ENTERPRISE, stripe_subscription_id="sub_e"
        )

        assert updated.plan == OrganizationPlan.ENTERPRISE
        assert updated.stripe_subscription_id == "sub_e"

    @pytest.mark.asyncio
    async def test_apply_plan_keeps_subscription_pointer(self, db_session):
        org = await OrganizationFactory.create(db_session, stripe_subscription_id="sub_keep")

        updated = await OrganizationDAO(db_session).apply_plan(org, OrganizationPlan.PRO)

        assert updated.stripe_subscription_id == "sub_keep"

    @pytest.mark.asyncio
    async def test_downgrade_to_free(self, db_session):
        org = await OrganizationFactory.create(
            db_session,
            name="Acme",
            plan=OrganizationPlan.PRO,
            stripe_subscription_id="sub_x",
        )

        updated = await OrganizationDAO(db_session).downgrade_to_free(org)

        assert updated.plan == OrganizationPlan.FREE
        assert updated.stripe_subscription_id is None
        assert updated.name == "Acme"

    @pytest.mark.asyncio
    async def test_get_owner(self, db_session):
        owner = await UserFactory.create(db_session)
        member = await UserFactory.create(db_session)
        org = await OrganizationFactory.create(db_session, owner=owner)
        await OrganizationMemberFactory.create(db_session, org, member)

        found = await OrganizationMemberDAO(db_session).get_owner(org.id)

        assert found.user_id == owner.id
        assert found.role == OrganizationRole.OWNER

    @pytest.mark.asyncio
    async def test_get_owner_none(self, db_session):
        member = await UserFactory.create(db_session)
        org = await OrganizationFactory.create(db_session)
        await OrganizationMemberFactory.create(db_session, org, member)

        assert await OrganizationMemberDAO(db_session).get_owner(org.id) is None


class TestUsagePeriodDAO:
    """Tests for UsagePeriodDAO.upsert_limits."""

    @pytest.mark.asyncio
    async def test_creates_then_updates(self, db_session):
        user = await UserFactory.create(db_session)
        dao = UsagePeriodDAO(db_session)
        start, end = date(2026, 5, 1), date(2026, 5, 31)

        first = await dao.upsert_limits(user.id, start, end, {"api_calls": 10})
        await db_session.commit()
        first_id = first.id
        second = await dao.upsert_limits(user.id, start, end, {"api_calls": 100})

        assert second.id == first_id
        assert second.usage_limits == {"api_calls": 100}
        assert second.usage_totals == {}
