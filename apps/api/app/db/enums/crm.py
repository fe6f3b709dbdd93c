"""CRM enums."""

from enum import Enum


class CompanyStatus(str, Enum):
    """Lifecycle status of a company record."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    LEAD = "lead"
    PROSPECT = "prospect"
    CUSTOMER = "customer"


class StageType(str, Enum):
    """
    Categorical label of a deal pipeline stage.

    Used for reporting: active stages count as open deals,
    won stages feed revenue aggregates.
    """

    ACTIVE = "active"
    WON = "won"
    LOST = "lost"
