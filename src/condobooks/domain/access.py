"""Authorization checks for mutating operations."""

from typing import Optional

from condobooks.domain.entities import Actor
from condobooks.domain.errors import AuthorizationError, admin_required


def require_admin(actor: Optional[Actor], action: str) -> Actor:
    """Return the actor if it may mutate data.

    Args:
        actor: Acting identity, or None when nobody is signed in
        action: Verb phrase for the error message, e.g. "import statements"

    Raises:
        AuthorizationError: If there is no actor or it is not an admin
    """
    if actor is None or not actor.is_admin:
        raise AuthorizationError(admin_required(action))
    return actor
