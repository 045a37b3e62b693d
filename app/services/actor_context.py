"""
Request-scoped actor context.

Admin impersonation state lives in per-user session storage as three keys.
Each request turns them into one immutable ActorContext up front; handlers
read the context and never touch the raw session keys.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from loguru import logger

from app.models.user import User
from app.repositories.user_repository import UserRepository


# Session storage keys
SESSION_USER_ID = "user_id"
SESSION_IMPERSONATED_USER_ID = "impersonated_user_id"
SESSION_REAL_ADMIN_ID = "real_admin_id"

IMPERSONATION_KEYS = (SESSION_IMPERSONATED_USER_ID, SESSION_REAL_ADMIN_ID)


@dataclass(frozen=True)
class ActorContext:
    """Who a request acts as, and who is really behind it."""

    effective_user: User
    acting_admin: User | None = None
    is_impersonating: bool = False

    @property
    def is_admin(self) -> bool:
        """Admin rights come from the real actor, not the impersonated one."""
        if self.is_impersonating:
            return self.acting_admin is not None and self.acting_admin.is_admin
        return self.effective_user.is_admin

    @property
    def real_user(self) -> User:
        """The account actually operating the session."""
        return self.acting_admin if self.is_impersonating else self.effective_user


@dataclass(frozen=True)
class ContextResolution:
    """Outcome of reading session data."""

    context: ActorContext | None
    clear_impersonation: bool = False


async def resolve_actor_context(
    user_repo: UserRepository, session_data: Mapping[str, Any]
) -> ContextResolution:
    """
    Build the actor context for one request from session data.

    An impersonation pair is honoured only when the real admin still exists
    and is an admin and the impersonated user exists. An invalid pair is
    flagged for clearing and the normal user is used. No user means the
    request is unauthenticated (context None).

    Args:
        user_repo: User repository on the request's session
        session_data: Stored session values

    Returns:
        ContextResolution
    """
    user_id = session_data.get(SESSION_USER_ID)
    impersonated_id = session_data.get(SESSION_IMPERSONATED_USER_ID)
    real_admin_id = session_data.get(SESSION_REAL_ADMIN_ID)
    clear = False

    if impersonated_id and real_admin_id:
        real_admin = await user_repo.get_by_id(real_admin_id)
        if real_admin is None or not real_admin.is_admin:
            logger.warning(
                "Dropping impersonation with invalid admin",
                extra={"real_admin_id": real_admin_id},
            )
            clear = True
        else:
            impersonated = await user_repo.get_by_id(impersonated_id)
            if impersonated is not None:
                return ContextResolution(
                    ActorContext(
                        effective_user=impersonated,
                        acting_admin=real_admin,
                        is_impersonating=True,
                    )
                )
            logger.warning(
                "Impersonated user no longer exists",
                extra={"impersonated_user_id": impersonated_id},
            )
            clear = True

    if not user_id:
        return ContextResolution(None, clear_impersonation=clear)

    user = await user_repo.get_by_id(user_id)
    if user is None:
        return ContextResolution(None, clear_impersonation=clear)

    return ContextResolution(
        ActorContext(effective_user=user), clear_impersonation=clear
    )


def start_impersonation(
    context: ActorContext, target: User
) -> dict[str, str]:
    """
    Session values that make an admin act as another user.

    Args:
        context: Current actor context
        target: User to impersonate

    Returns:
        Session keys to store

    Raises:
        PermissionError: If the real actor is not an admin
    """
    if not context.is_admin:
        raise PermissionError("Only admins can impersonate users")

    admin = context.real_user
    logger.info(
        f"Admin {admin.id} impersonating {target.id}",
        extra={"admin_id": admin.id, "target_id": target.id},
    )
    return {
        SESSION_IMPERSONATED_USER_ID: target.id,
        SESSION_REAL_ADMIN_ID: admin.id,
    }


def stop_impersonation(session_data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Session data with the impersonation keys removed.

    Args:
        session_data: Stored session values

    Returns:
        Copy without impersonation keys
    """
    return {
        key: value
        for key, value in session_data.items()
        if key not in IMPERSONATION_KEYS
    }
