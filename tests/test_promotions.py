from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from points_ledger.models import Promotion, PromotionType, PromotionUsage
from points_ledger.services.ledger import (
    InvalidInputError,
    InvalidPromotionError,
    InvalidStateError,
    NotFoundError,
    PromotionEvaluator,
    PromotionFields,
    PromotionService,
    TransactionStateMachine,
)


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _promotion(**overrides) -> Promotion:
    values = {
        "name": "Double points",
        "description": "Earn extra points",
        "type": PromotionType.AUTOMATIC,
        "start_time": NOW - timedelta(days=1),
        "end_time": NOW + timedelta(days=1),
        "min_spending": None,
        "rate": Decimal("0.01"),
        "points": None,
    }
    values.update(overrides)
    return Promotion(**values)


def _fields(**overrides) -> PromotionFields:
    values = {
        "name": "Launch week",
        "description": "Bonus points during launch week",
        "type": PromotionType.ONE_TIME,
        "start_time": NOW + timedelta(days=1),
        "end_time": NOW + timedelta(days=8),
        "min_spending": Decimal("5"),
        "rate": None,
        "points": 20,
    }
    values.update(overrides)
    return PromotionFields(**values)


@pytest.mark.asyncio
async def test_validate_returns_promotions_in_requested_order(session_factory, accounts) -> None:
    async with session_factory() as session:
        first = _promotion(name="First")
        second = _promotion(name="Second", type=PromotionType.ONE_TIME, points=5, rate=None)
        session.add_all([first, second])
        await session.commit()

        evaluator = PromotionEvaluator(session)
        result = await evaluator.validate(accounts["alice"], [second.id, first.id], Decimal("10"), now=NOW)

        assert [promotion.id for promotion in result] == [second.id, first.id]
        usages = (await session.execute(select(PromotionUsage))).scalars().all()
        assert usages == []


@pytest.mark.asyncio
async def test_validate_with_no_promotions_is_empty(session_factory, accounts) -> None:
    async with session_factory() as session:
        assert await PromotionEvaluator(session).validate(accounts["alice"], [], Decimal("10"), now=NOW) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"start_time": NOW + timedelta(hours=1)},
        {"end_time": NOW},
        {"min_spending": Decimal("50.00")},
    ],
)
async def test_validate_rejects_ineligible_promotions(session_factory, accounts, overrides) -> None:
    async with session_factory() as session:
        promotion = _promotion(**overrides)
        session.add(promotion)
        await session.commit()

        with pytest.raises(InvalidPromotionError) as exc_info:
            await PromotionEvaluator(session).validate(accounts["alice"], [promotion.id], Decimal("10"), now=NOW)
        assert exc_info.value.promotion_id == promotion.id


@pytest.mark.asyncio
async def test_validate_rejects_unknown_promotion(session_factory, accounts) -> None:
    async with session_factory() as session:
        with pytest.raises(InvalidPromotionError):
            await PromotionEvaluator(session).validate(accounts["alice"], [999], Decimal("10"), now=NOW)


@pytest.mark.asyncio
@pytest.mark.parametrize("promotion_ids", [[1, 1], [0], [-3], ["1"], [True]])
async def test_validate_rejects_malformed_ids(session_factory, accounts, promotion_ids) -> None:
    async with session_factory() as session:
        with pytest.raises(InvalidInputError):
            await PromotionEvaluator(session).validate(accounts["alice"], promotion_ids, Decimal("10"), now=NOW)


@pytest.mark.asyncio
async def test_one_time_promotion_is_consumed_once(session_factory, accounts) -> None:
    async with session_factory() as session:
        promotion = _promotion(
            type=PromotionType.ONE_TIME,
            start_time=datetime.now(timezone.utc) - timedelta(days=1),
            end_time=datetime.now(timezone.utc) + timedelta(days=1),
            rate=None,
            points=25,
        )
        session.add(promotion)
        await session.commit()
        promotion_id = promotion.id

        machine = TransactionStateMachine(session)
        first = await machine.create_purchase(accounts["alice"], accounts["cashier"], Decimal("10"), [promotion_id])
        assert first.amount == 40 + 25
        assert first.promotion_ids == [promotion_id]

        with pytest.raises(InvalidPromotionError):
            await machine.create_purchase(accounts["alice"], accounts["cashier"], Decimal("10"), [promotion_id])

        # Another member can still use it.
        other = await machine.create_purchase(accounts["bob"], accounts["cashier"], Decimal("10"), [promotion_id])
        assert other.amount == 65

        usages = (await session.execute(select(PromotionUsage))).scalars().all()
        assert sorted(usage.account_id for usage in usages) == sorted([accounts["alice"], accounts["bob"]])


@pytest.mark.asyncio
async def test_automatic_promotion_applies_repeatedly(session_factory, accounts) -> None:
    async with session_factory() as session:
        promotion = _promotion(
            start_time=datetime.now(timezone.utc) - timedelta(days=1),
            end_time=datetime.now(timezone.utc) + timedelta(days=1),
            rate=Decimal("0.02"),
            points=5,
        )
        session.add(promotion)
        await session.commit()

        machine = TransactionStateMachine(session)
        for _ in range(3):
            view = await machine.create_purchase(accounts["alice"], accounts["cashier"], Decimal("10.00"), [promotion.id])
            assert view.amount == 65

        balance = await machine.balance(accounts["alice"])
        assert balance.points == 195
        usages = (await session.execute(select(PromotionUsage))).scalars().all()
        assert usages == []


@pytest.mark.asyncio
async def test_create_promotion_validates_window_and_bonus(session_factory) -> None:
    async with session_factory() as session:
        service = PromotionService(session)

        promotion = await service.create_promotion(_fields(), now=NOW)
        assert promotion.id is not None
        assert promotion.type == PromotionType.ONE_TIME

        with pytest.raises(InvalidInputError):
            await service.create_promotion(_fields(start_time=NOW - timedelta(minutes=1)), now=NOW)
        with pytest.raises(InvalidInputError):
            await service.create_promotion(_fields(end_time=NOW + timedelta(hours=1)), now=NOW)
        with pytest.raises(InvalidInputError):
            await service.create_promotion(_fields(rate=None, points=None), now=NOW)
        with pytest.raises(InvalidInputError):
            await service.create_promotion(_fields(rate=Decimal("0")), now=NOW)
        with pytest.raises(InvalidInputError):
            await service.create_promotion(_fields(name="x" * 101), now=NOW)


@pytest.mark.asyncio
async def test_update_promotion_only_before_start(session_factory) -> None:
    async with session_factory() as session:
        service = PromotionService(session)
        promotion = await service.create_promotion(_fields(), now=NOW)

        updated = await service.update_promotion(promotion.id, {"points": 30, "name": " Renamed "}, now=NOW)
        assert updated.points == 30
        assert updated.name == "Renamed"

        with pytest.raises(InvalidInputError):
            await service.update_promotion(promotion.id, {}, now=NOW)
        with pytest.raises(InvalidInputError):
            await service.update_promotion(promotion.id, {"id": 5}, now=NOW)
        with pytest.raises(InvalidInputError):
            await service.update_promotion(promotion.id, {"end_time": NOW}, now=NOW)

        later = NOW + timedelta(days=2)
        with pytest.raises(InvalidStateError):
            await service.update_promotion(promotion.id, {"points": 1}, now=later)


@pytest.mark.asyncio
async def test_delete_promotion_rules(session_factory, accounts) -> None:
    async with session_factory() as session:
        service = PromotionService(session)

        upcoming = await service.create_promotion(_fields(name="Upcoming"), now=NOW)
        await service.delete_promotion(upcoming.id, now=NOW)
        with pytest.raises(NotFoundError):
            await service.get_promotion(upcoming.id)

        started = datetime.now(timezone.utc) - timedelta(hours=1)
        used = _promotion(name="Used", start_time=started, end_time=started + timedelta(days=2))
        unused = _promotion(name="Unused", start_time=started, end_time=started + timedelta(days=2))
        session.add_all([used, unused])
        await session.commit()

        machine = TransactionStateMachine(session)
        await machine.create_purchase(accounts["alice"], accounts["cashier"], Decimal("4"), [used.id])

        with pytest.raises(InvalidStateError):
            await service.delete_promotion(used.id)
        await service.delete_promotion(unused.id)
        with pytest.raises(NotFoundError):
            await service.get_promotion(unused.id)


@pytest.mark.asyncio
async def test_one_time_usage_survives_quarantine(session_factory, accounts) -> None:
    async with session_factory() as session:
        now = datetime.now(timezone.utc)
        promotion = _promotion(
            type=PromotionType.ONE_TIME,
            start_time=now - timedelta(days=1),
            end_time=now + timedelta(days=1),
            rate=None,
            points=10,
        )
        session.add(promotion)
        await session.commit()
        promotion_id = promotion.id

        machine = TransactionStateMachine(session)
        quarantined = await machine.create_purchase(
            accounts["alice"], accounts["shady"], Decimal("1"), [promotion_id]
        )
        assert quarantined.suspicious is True
        assert quarantined.earned == 0

        with pytest.raises(InvalidPromotionError):
            await machine.create_purchase(accounts["alice"], accounts["cashier"], Decimal("1"), [promotion_id])

        usages = (await session.execute(select(PromotionUsage))).scalars().all()
        assert [(usage.account_id, usage.transaction_id) for usage in usages] == [
            (accounts["alice"], quarantined.id)
        ]
