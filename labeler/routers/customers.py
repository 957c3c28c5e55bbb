"""
Customer endpoints

Known customer names and spelling checks for names supplied by callers.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.db import get_session
from labeler.schemas.analytics import CustomerListResponse, CustomerNameValidation
from labeler.services.customer_service import CustomerService

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=CustomerListResponse, summary="List customer names")
async def list_customers(
    limit: int = Query(50, ge=1, le=1000),
    session: AsyncSession = Depends(get_session),
) -> CustomerListResponse:
    customers = await CustomerService(session=session).list_customers(limit)
    return CustomerListResponse(customers=customers)


@router.get(
    "/validate",
    response_model=CustomerNameValidation,
    summary="Check a customer name",
)
async def validate_customer_name(
    name: str = Query("", description="Customer name as typed by the user"),
    session: AsyncSession = Depends(get_session),
) -> CustomerNameValidation:
    """Unknown names come back with is_valid=false and the closest spellings."""
    return await CustomerService(session=session).validate_customer_name(name)
