"""API-layer dependencies: request-scoped wiring (UoW, current user, cron secret)."""

from newsdesk.api.dependencies.cron import require_cron_secret
from newsdesk.api.dependencies.current_user import get_current_user
from newsdesk.api.dependencies.unit_of_work import UnitOfWork, get_uow

__all__ = ["UnitOfWork", "get_current_user", "get_uow", "require_cron_secret"]
