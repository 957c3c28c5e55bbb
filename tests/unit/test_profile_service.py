from decimal import Decimal

import pytest

from labeler.core.exceptions import ValidationError
from labeler.schemas.analytics import ProfileRequest
from labeler.services.profile_service import CounterpartyProfileService


@pytest.mark.asyncio
async def test_profiles_per_counterparty(async_db_session, seed_transactions, now) -> None:
    await seed_transactions(
        {"counterparty_account": "P", "counterparty_name": "Landlord", "amount": Decimal("800"), "days_ago": 10},
        {"counterparty_account": "P", "counterparty_name": "Landlord BV", "amount": Decimal("800"), "days_ago": 40},
        {"counterparty_account": "P", "amount": Decimal("850"), "days_ago": 70},
        {"counterparty_account": "Q", "amount": Decimal("12.50"), "days_ago": 5},
        {"counterparty_account": "Q", "amount": Decimal("30"), "days_ago": 500},
    )
    service = CounterpartyProfileService(session=async_db_session)

    profiles = await service.get_profiles(ProfileRequest(months=12), now=now)

    assert [p.counterparty_account for p in profiles] == ["P", "Q"]
    landlord, shop = profiles
    assert landlord.transaction_count == 3
    assert landlord.total_amount == Decimal("2450")
    assert landlord.min_amount == Decimal("800")
    assert landlord.max_amount == Decimal("850")
    assert landlord.mean_amount == pytest.approx(816.6667, rel=1e-4)
    assert landlord.counterparty_name == "Landlord"
    assert shop.transaction_count == 1
    assert shop.stdev_amount is None


@pytest.mark.asyncio
async def test_months_must_be_positive(async_db_session, now) -> None:
    service = CounterpartyProfileService(session=async_db_session)

    with pytest.raises(ValidationError):
        await service.get_profiles(ProfileRequest(months=0), now=now)
