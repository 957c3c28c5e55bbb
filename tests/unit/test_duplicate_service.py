"""
Unit tests for DuplicatePaymentService
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from labeler.models.transaction import Transaction, TransactionType
from labeler.schemas.analytics import DuplicatePaymentRequest
from labeler.services.duplicate_service import (
    DuplicatePaymentService,
    group_duplicates,
    payee_of,
)

START = datetime(2025, 2, 1, 9, 0, tzinfo=timezone.utc)
TODAY = date(2025, 6, 1)


def _payment(day: int, account: str | None = "NL01GYM", amount: str = "29.99", **extra) -> Transaction:
    return Transaction(
        description=extra.pop("description", "Gym membership"),
        amount=Decimal(amount),
        transaction_type=extra.pop("transaction_type", TransactionType.DEBIT),
        transaction_date=START + timedelta(days=day),
        counterparty_account=account,
        customer_name=extra.pop("customer_name", "acme"),
        **extra,
    )


def test_payee_falls_back_to_normalized_description() -> None:
    assert payee_of(_payment(0)) == "NL01GYM"
    assert payee_of(_payment(0, account=None, description="  Gym   MEMBERSHIP ")) == "gym membership"


def test_repeats_chain_while_each_gap_fits_the_window() -> None:
    rows = [_payment(0), _payment(5), _payment(11), _payment(30)]

    chains = group_duplicates(rows, window_days=7)

    assert [[r.transaction_date.day for r in chain] for chain in chains] == [[1, 6, 12]]


def test_different_amount_customer_or_direction_is_not_a_duplicate() -> None:
    rows = [
        _payment(0),
        _payment(1, amount="30.00"),
        _payment(2, customer_name="globex"),
        _payment(3, transaction_type=TransactionType.CREDIT),
    ]

    assert group_duplicates(rows, window_days=7) == []


def test_zero_window_needs_the_same_moment() -> None:
    rows = [_payment(0), _payment(0), _payment(1)]

    chains = group_duplicates(rows, window_days=0)

    assert [len(chain) for chain in chains] == [2]


@pytest.fixture
async def payments(seed_transactions):
    return await seed_transactions(
        {"description": "Gym", "counterparty_account": "GYM", "amount": Decimal("29.99"),
         "transaction_date": START},
        {"description": "Gym", "counterparty_account": "GYM", "amount": Decimal("29.99"),
         "transaction_date": START + timedelta(days=3)},
        {"description": "Coffee", "counterparty_account": "CAFE", "amount": Decimal("3.20"),
         "transaction_date": START + timedelta(days=1)},
        {"description": "Coffee", "counterparty_account": "CAFE", "amount": Decimal("3.20"),
         "transaction_date": START + timedelta(days=2)},
        {"description": "Refund", "counterparty_account": "CAFE", "amount": Decimal("3.20"),
         "transaction_type": TransactionType.CREDIT, "transaction_date": START + timedelta(days=2)},
        {"description": "Gym", "counterparty_account": "GYM", "amount": Decimal("29.99"),
         "transaction_date": START - timedelta(days=400)},
    )


@pytest.mark.asyncio
async def test_finds_debit_duplicates_in_the_year(async_db_session, payments) -> None:
    service = DuplicatePaymentService(session=async_db_session)

    response = await service.find_duplicates(DuplicatePaymentRequest(), today=TODAY)

    assert (response.start_date, response.end_date) == (date(2025, 1, 1), date(2025, 12, 31))
    assert [(g.payee, g.transaction_count) for g in response.groups] == [("GYM", 2), ("CAFE", 2)]
    assert response.groups[0].amount == Decimal("29.99")


@pytest.mark.asyncio
async def test_amount_and_description_narrow_the_search(async_db_session, payments) -> None:
    service = DuplicatePaymentService(session=async_db_session)

    by_amount = await service.find_duplicates(
        DuplicatePaymentRequest(amount=Decimal("3.20")), today=TODAY
    )
    by_description = await service.find_duplicates(
        DuplicatePaymentRequest(description="gym"), today=TODAY
    )

    assert [g.payee for g in by_amount.groups] == ["CAFE"]
    assert [g.payee for g in by_description.groups] == ["GYM"]


@pytest.mark.asyncio
async def test_short_window_splits_repeats(async_db_session, payments) -> None:
    service = DuplicatePaymentService(session=async_db_session)

    response = await service.find_duplicates(DuplicatePaymentRequest(window_days=2), today=TODAY)

    assert [g.payee for g in response.groups] == ["CAFE"]
