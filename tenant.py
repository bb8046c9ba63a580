"""
Tenant scoping: every non-super-admin principal is confined to its school.

The filter is always a bound parameter, never an interpolated value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import g

from roles import Role


@dataclass(frozen=True)
class TenantContext:
    school_id: int | None
    education_system: str = "anglophone"


def tenant_for(principal) -> TenantContext | None:
    """Derive the tenant for a principal; None means unrestricted.

    Only super admins are unrestricted. Any other principal without a school
    gets a tenant whose filter matches no rows.
    """
    if principal is None or principal.role == Role.SUPER_ADMIN.value:
        return None
    return TenantContext(principal.school_id, principal.education_system or "anglophone")


def current_tenant() -> TenantContext | None:
    return g.get("tenant")


def tenant_filter(
    column: str = "school_id",
    base: str = "",
    params: list[Any] | None = None,
    tenant: TenantContext | None = None,
) -> tuple[str, list[Any]]:
    """Append ``column = ?`` for the current tenant to a WHERE clause.

    ``base`` is either empty, a bare predicate, or a clause starting with
    WHERE. Returns the combined clause (starting with WHERE when non-empty)
    and the extended parameter list.
    """
    params = list(params or [])
    clause = base.strip()
    if clause.upper().startswith("WHERE "):
        clause = clause[6:].strip()

    tenant = tenant if tenant is not None else current_tenant()
    if tenant is not None:
        if tenant.school_id is None:
            predicate = "1 = 0"
        else:
            predicate = f"{column} = ?"
            params.append(tenant.school_id)
        clause = f"{clause} AND {predicate}" if clause else predicate

    return (f"WHERE {clause}" if clause else ""), params


def in_tenant(school_id: int | None) -> bool:
    """True when a record's school is visible to the current principal."""
    tenant = current_tenant()
    if tenant is None:
        return True
    return tenant.school_id is not None and school_id == tenant.school_id
