"""
Customer Service

Lists known customer names and checks a caller-supplied name against them,
suggesting the closest spellings when it does not match exactly.
"""

from __future__ import annotations

from rapidfuzz import fuzz, process, utils
from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.config import settings
from labeler.core.logging import get_logger
from labeler.repositories.transaction_repository import TransactionRepository
from labeler.schemas.analytics import CustomerNameValidation

logger = get_logger(__name__)

MAX_SUGGESTIONS = 5
FALLBACK_LISTING = 10


class CustomerService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        repository: TransactionRepository | None = None,
        match_threshold: float | None = None,
    ) -> None:
        self.session = session
        self.repository = repository or TransactionRepository(session)
        self.match_threshold = match_threshold or settings.customer_match_threshold

    async def list_customers(self, limit: int | None = 50) -> list[str]:
        return await self.repository.customer_names(limit)

    async def validate_customer_name(self, customer_name: str | None) -> CustomerNameValidation:
        """
        Exact match, else fuzzy suggestions scored 0-100 by rapidfuzz WRatio

        A missing name is valid and means "all customers".
        """
        name = (customer_name or "").strip()
        if not name:
            return CustomerNameValidation(
                is_valid=True, message="No customer name given; all customers are searched"
            )

        known = await self.repository.customer_names()
        if name in known:
            return CustomerNameValidation(
                customer_name=name,
                is_valid=True,
                corrected_name=name,
                similarity=1.0,
                message="Customer name found",
            )

        matches = process.extract(
            name,
            known,
            scorer=fuzz.WRatio,
            processor=utils.default_process,
            limit=MAX_SUGGESTIONS,
            score_cutoff=self.match_threshold,
        )
        logger.info("customer_name_not_found", candidates=len(known), suggestions=len(matches))

        if matches:
            best, score, _ = matches[0]
            return CustomerNameValidation(
                customer_name=name,
                is_valid=False,
                corrected_name=best,
                similarity=round(score / 100.0, 4),
                suggestions=[choice for choice, _, _ in matches],
                message=f"Customer '{name}' not found. Did you mean '{best}'?",
            )

        return CustomerNameValidation(
            customer_name=name,
            is_valid=False,
            suggestions=known[:FALLBACK_LISTING],
            message=f"Customer '{name}' not found",
        )
