"""SQLModel table models — import here so metadata is populated."""

from investor_portal.models.investment_request import InvestmentRequest  # noqa: F401
from investor_portal.models.investor import Investor  # noqa: F401
from investor_portal.models.setting import RateHistory, Setting  # noqa: F401
