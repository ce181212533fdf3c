"""
Explicit tenant scoping for every data-access call.

A TenantScope is built once from the gym resolved at login and passed to
every service function. Member gyms only ever see rows whose tenant column
equals their id; admin gyms see all tenants. There is no ambient session
state to set first, so there is no ordering between "set context" and
"run query" to get wrong.

A scope without a resolved tenant fails closed on first use.
"""
from typing import Any, Optional, Type
import logging

from sqlalchemy.orm import Session, Query

from core.exceptions import AuthorizationError, NotFoundError
from models import (
    AssignmentDistribution,
    FormatProgress,
    FormatSubmission,
    GymTenant,
)

logger = logging.getLogger(__name__)

# Which column carries the tenant id on each tenant-owned table.
TENANT_COLUMNS = {
    AssignmentDistribution: AssignmentDistribution.assigned_to_gym_id,
    FormatSubmission: FormatSubmission.gym_id,
    FormatProgress: FormatProgress.gym_id,
}


class TenantScope:
    """Tenant-bound view of the record store."""

    def __init__(self, db: Session, gym: Optional[GymTenant]):
        self.db = db
        self._gym = gym

    @property
    def gym(self) -> GymTenant:
        if self._gym is None or not self._gym.id:
            raise AuthorizationError("No tenant context for this session")
        if not self._gym.active:
            raise AuthorizationError("Gym account is inactive")
        return self._gym

    @property
    def gym_id(self) -> str:
        return self.gym.id

    @property
    def is_admin(self) -> bool:
        return self.gym.is_admin

    def require_admin(self) -> GymTenant:
        gym = self.gym
        if not gym.is_admin:
            raise AuthorizationError("Admin access required")
        return gym

    def _tenant_column(self, model: Type[Any]):
        column = TENANT_COLUMNS.get(model)
        if column is None:
            raise AuthorizationError(f"{model.__name__} is not tenant scoped")
        return column

    def query(self, model: Type[Any]) -> Query:
        """Query a tenant-owned table, filtered to this tenant unless admin."""
        column = self._tenant_column(model)
        gym = self.gym
        q = self.db.query(model)
        if gym.is_admin:
            return q
        return q.filter(column == gym.id)

    def query_for_gym(self, model: Type[Any], gym_id: str) -> Query:
        """Query another tenant's rows; admin only unless gym_id is our own."""
        column = self._tenant_column(model)
        if gym_id != self.gym_id:
            self.require_admin()
        return self.db.query(model).filter(column == gym_id)

    def get(self, model: Type[Any], row_id: Any, resource: Optional[str] = None):
        """
        Load one tenant-owned row by id.

        Missing rows are NotFoundError; rows owned by another tenant are
        AuthorizationError (never returned, never reported as missing).
        """
        column = self._tenant_column(model)
        row = self.db.get(model, row_id)
        if row is None:
            raise NotFoundError(resource or model.__name__, str(row_id))
        owner = getattr(row, column.key)
        gym = self.gym
        if not gym.is_admin and owner != gym.id:
            logger.warning(
                "Tenant scope violation",
                extra={"extra_fields": {"gym_id": gym.id, "model": model.__name__, "row_id": str(row_id)}},
            )
            raise AuthorizationError(f"{resource or model.__name__} does not belong to this gym")
        return row


def with_tenant(db: Session, gym: Optional[GymTenant]) -> TenantScope:
    """Bind a session to a resolved tenant."""
    return TenantScope(db, gym)
