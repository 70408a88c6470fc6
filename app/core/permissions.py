from enum import Enum
from typing import Iterable, List


class EmployeeRole(str, Enum):
    ADMIN = "admin"
    SCREENER = "screener"
    CREDIT_MANAGER = "creditManager"
    SANCTION_HEAD = "sanctionHead"
    DISBURSAL_MANAGER = "disbursalManager"
    DISBURSAL_HEAD = "disbursalHead"
    ACCOUNT_EXECUTIVE = "accountExecutive"
    COLLECTION_EXECUTIVE = "collectionExecutive"

    @classmethod
    def list_all(cls) -> List[str]:
        return [role.value for role in cls]

    @classmethod
    def normalize(cls, values: Iterable[str]) -> List[str]:
        """Return unique role values that are valid members, preserving order."""
        seen = set()
        normalized: list[str] = []
        for value in values:
            try:
                role = cls(value)
            except ValueError:
                continue
            if role.value not in seen:
                seen.add(role.value)
                normalized.append(role.value)
        return normalized


class WorkflowStage(str, Enum):
    LEAD = "Lead"
    APPLICATION = "Application"
    SANCTION = "Sanction"
    DISBURSAL = "Disbursal"
    ACTIVE = "Active"
    CLOSED = "Closed"


# Stage whose record a role acts on when rejecting or holding.
ROLE_STAGE = {
    EmployeeRole.SCREENER: WorkflowStage.LEAD,
    EmployeeRole.CREDIT_MANAGER: WorkflowStage.APPLICATION,
    EmployeeRole.SANCTION_HEAD: WorkflowStage.SANCTION,
    EmployeeRole.DISBURSAL_MANAGER: WorkflowStage.DISBURSAL,
    EmployeeRole.DISBURSAL_HEAD: WorkflowStage.DISBURSAL,
}


def stage_for_role(role: EmployeeRole | str) -> WorkflowStage | None:
    try:
        return ROLE_STAGE.get(EmployeeRole(role))
    except ValueError:
        return None
