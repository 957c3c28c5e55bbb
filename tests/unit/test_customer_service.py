import pytest

from labeler.services.customer_service import CustomerService


@pytest.fixture
async def customers(seed_transactions):
    return await seed_transactions(
        {"customer_name": "Acme Corporation"},
        {"customer_name": "Acme Corporation"},
        {"customer_name": "Globex"},
        {"customer_name": "Initech"},
        {"customer_name": None},
    )


@pytest.mark.asyncio
async def test_list_customers_is_distinct_and_sorted(async_db_session, customers) -> None:
    service = CustomerService(session=async_db_session)

    assert await service.list_customers() == ["Acme Corporation", "Globex", "Initech"]
    assert await service.list_customers(limit=1) == ["Acme Corporation"]


@pytest.mark.asyncio
async def test_exact_name_is_valid(async_db_session, customers) -> None:
    result = await CustomerService(session=async_db_session).validate_customer_name("Globex")

    assert result.is_valid is True
    assert result.similarity == 1.0


@pytest.mark.asyncio
async def test_misspelled_name_gets_a_correction(async_db_session, customers) -> None:
    result = await CustomerService(session=async_db_session).validate_customer_name("acme corp")

    assert result.is_valid is False
    assert result.corrected_name == "Acme Corporation"
    assert result.suggestions[0] == "Acme Corporation"
    assert 0.6 <= result.similarity < 1.0


@pytest.mark.asyncio
async def test_unrelated_name_lists_known_customers(async_db_session, customers) -> None:
    result = await CustomerService(session=async_db_session).validate_customer_name("zzzz")

    assert result.is_valid is False
    assert result.corrected_name is None
    assert result.suggestions == ["Acme Corporation", "Globex", "Initech"]


@pytest.mark.asyncio
async def test_missing_name_means_all_customers(async_db_session) -> None:
    result = await CustomerService(session=async_db_session).validate_customer_name("  ")

    assert result.is_valid is True
    assert result.customer_name is None
