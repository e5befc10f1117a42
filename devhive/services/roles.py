"""
Role resolution.

Built-in role templates live outside the store; this module is the oracle
that answers whether a name is one of them, and resolves a role name to
where it is defined.
"""

from typing import Dict, List, Optional, Tuple

from devhive.db.database import CoordinationStore

BUILTIN_ROLES: Dict[str, str] = {
    "frontend": "Frontend developer: UI components, styling, client-side behaviour",
    "backend": "Backend developer: APIs, services, persistence",
    "test": "Test engineer: unit, integration and end-to-end tests",
    "docs": "Technical writer: documentation, guides, API references",
    "security": "Security engineer: audits, vulnerability fixes, hardening",
    "devops": "DevOps engineer: CI/CD, infrastructure, deployment",
}

SOURCE_CATALOG = "catalog"
SOURCE_BUILTIN = "builtin"


def is_builtin_role(name: Optional[str]) -> bool:
    return bool(name) and name in BUILTIN_ROLES


def list_builtin_roles() -> List[Tuple[str, str]]:
    return sorted(BUILTIN_ROLES.items())


def resolve_role(db: CoordinationStore, name: Optional[str]) -> Optional[str]:
    """
    Return where ``name`` is defined: "catalog" when a role row exists,
    "builtin" for a built-in template, None when it is unknown.
    Catalog rows take precedence over templates of the same name.
    """
    if not name:
        return None
    if db.get_role(name) is not None:
        return SOURCE_CATALOG
    if is_builtin_role(name):
        return SOURCE_BUILTIN
    return None
