"""Role → permission mapping for PalmTrack.

Each role carries a fixed permission set.  The effective set is embedded
in the JWT at login so route guards are token-only checks.

Permission naming: `<resource>.<action>`
  Resources: users, agents, advances, expenses, collections, prices,
             reconciliation, orders, reports
  Actions:   read, write, delete, export
"""

from __future__ import annotations


# ── All known permissions ───────────────────────────────────

ALL_PERMISSIONS: set[str] = {
    # User management
    "users.read",
    "users.write",
    "users.delete",

    # Field agents
    "agents.read",
    "agents.write",
    "agents.delete",

    # Money out to agents
    "advances.read",
    "advances.write",
    "expenses.read",
    "expenses.write",

    # Fruit intake
    "collections.read",
    "collections.write",
    "prices.read",
    "prices.write",

    # Month-end
    "reconciliation.read",
    "reconciliation.write",

    # Sales
    "orders.read",
    "orders.write",

    # Reports
    "reports.read",
    "reports.export",
}


# ── Role → permissions ──────────────────────────────────────

ROLE_DEFAULTS: dict[str, set[str]] = {
    "ADMIN": ALL_PERMISSIONS.copy(),

    # Agents only ever see rows scoped to their own agent_id
    "AGENT": {
        "agents.read",
        "advances.read",
        "expenses.read", "expenses.write",
        "collections.read", "collections.write",
        "prices.read",
        "reconciliation.read",
        "reports.read", "reports.export",
    },
}


def resolve_permissions(role: str) -> list[str]:
    """Return the sorted permission list for a role (stable JWT claims)."""
    return sorted(ROLE_DEFAULTS.get(role, set()))


def has_permission(user_permissions: list[str] | set[str], required: str) -> bool:
    """Check whether a permission set satisfies a requirement."""
    return required in user_permissions
