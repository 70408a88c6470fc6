import asyncio
import logging

from sqlalchemy import select

from app.core.permissions import EmployeeRole
from app.core.settings import settings
from app.db.session import AsyncSessionLocal
from app.models.employee import Employee

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """
    Seed the database with an initial admin employee when one is configured.
    """
    if not settings.seed_admin_email:
        return
    async with AsyncSessionLocal() as session:
        logger.info("Seeding database")
        stmt = select(Employee).where(Employee.email == settings.seed_admin_email)
        result = await session.execute(stmt)
        employee = result.scalar_one_or_none()

        if not employee:
            employee = Employee(
                email=settings.seed_admin_email,
                f_name=settings.seed_admin_first_name,
                l_name=settings.seed_admin_last_name,
                roles=[EmployeeRole.ADMIN.value],
                is_active=True,
            )
            session.add(employee)
            await session.commit()
            logger.info("Admin employee created: %s", employee.email)
        else:
            logger.info("Admin employee already exists")


if __name__ == "__main__":
    asyncio.run(init_db())
