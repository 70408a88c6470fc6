from __future__ import annotations

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.settings import settings
from app.models.sequence import Sequence

LEAD_NO = "leadNo"
LOAN_NO = "loanNo"


def format_sequence(prefix: str, value: int, width: int) -> str:
    return f"{prefix}{value:0{width}d}"


async def next_sequence(db: AsyncSession, name: str, prefix: str, width: int) -> str:
    """Increment the named counter and return the formatted identifier.

    The upsert takes a row lock on the counter, so concurrent callers are
    serialized by Postgres and always receive distinct, increasing values.
    """
    stmt = (
        insert(Sequence)
        .values(name=name, value=1)
        .on_conflict_do_update(
            index_elements=[Sequence.name],
            set_={"value": Sequence.value + 1},
        )
        .returning(Sequence.value)
    )
    result = await db.execute(stmt)
    value = int(result.scalar_one())
    return format_sequence(prefix, value, width)


async def next_lead_no(db: AsyncSession) -> str:
    return await next_sequence(db, LEAD_NO, settings.lead_no_prefix, settings.lead_no_width)


async def next_loan_no(db: AsyncSession) -> str:
    return await next_sequence(db, LOAN_NO, settings.loan_no_prefix, settings.loan_no_width)
