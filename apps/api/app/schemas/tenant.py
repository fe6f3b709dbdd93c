"""Tenant context schema."""

from pydantic import BaseModel, ConfigDict


class TenantContext(BaseModel):
    """
    Per-request tenant scope.

    Returned by the get_tenant_context dependency. Every query path
    receives it; apply_rls=False is the trusted full-table mode.
    """

    model_config = ConfigDict(frozen=True)

    client_id: int
    app_id: str
    user_id: int | None = None
    apply_rls: bool = True

    @property
    def authenticated_user(self) -> bool:
        return self.user_id is not None
