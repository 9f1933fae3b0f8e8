"""
Module: stock_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - Selectors return frozen domain dataclasses, not ORM instances.
    - Tenant filters are applied by the session's scoping interceptor, so
      selectors never spell out ``tenant_id`` themselves.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.

    Non-goals:
        Session lifecycle.  The caller owns the session and its transaction.
    """

    def __init__(self, session: Session):
        self.session = session
