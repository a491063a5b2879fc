"""
Database model registry.

Importing this module registers every table with SQLModel's metadata, which
must happen before ``create_all()`` runs.
"""

from investor_portal.models.investment_request import InvestmentRequest  # noqa: F401
from investor_portal.models.investor import Investor  # noqa: F401
from investor_portal.models.setting import RateHistory, Setting  # noqa: F401
