"""
Admin Hierarchy Handlers
Upline/downline lookups, drift diagnosis, repair, cache rebuild and
impersonation commands for CRM admins
"""

from typing import Any

from aiogram import Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import Message
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import DEFAULT_DOWNLINE_DISPLAY_DEPTH
from app.config.settings import settings
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.services.actor_context import (
    ActorContext,
    start_impersonation,
    stop_impersonation,
)
from app.services.hierarchy import (
    HierarchyCacheBuilder,
    HierarchyReconciler,
    HierarchyResolver,
)
from app.services.team_service import TeamActivityService
from app.utils.exceptions import HierarchyError
from bot.utils.formatters import (
    format_downline,
    format_drift_report,
    format_rebuild_summary,
    format_repair_result,
    format_team_activity,
    format_upline,
    format_user,
    split_message,
)


router = Router(name="admin_hierarchy")

ROOT_KEYWORDS = ("root", "none", "-")


async def answer_long(message: Message, text: str) -> None:
    """Send text in as many messages as it needs."""
    for chunk in split_message(text):
        await message.answer(chunk)


def parse_args(message: Message) -> list[str]:
    """Command arguments without the command itself."""
    return (message.text or "").split()[1:]


def parse_depth(value: str | None, default: int) -> int | None:
    """Depth argument: a positive number, or the default."""
    if value is None:
        return default
    if value.isdigit() and int(value) > 0:
        return int(value)
    return None


async def resolve_user_or_answer(
    message: Message, session: AsyncSession, identifier: str
) -> User | None:
    """Find a user by any identifier, telling the admin when there is none."""
    user = await UserRepository(session).resolve(identifier)
    if user is None:
        await message.answer(f"❌ User not found: {identifier}")
    return user


@router.message(Command("upline"))
async def cmd_upline(
    message: Message,
    session: AsyncSession,
    **data: Any,
) -> None:
    """/upline <user> [depth] - live upline, nearest sponsor first."""
    args = parse_args(message)
    if not args:
        await message.answer("Usage: /upline <user id | email | code> [depth]")
        return

    depth = parse_depth(args[1] if len(args) > 1 else None, settings.upline_display_depth)
    if depth is None:
        await message.answer("❌ Depth must be a positive number")
        return

    user = await resolve_user_or_answer(message, session, args[0])
    if not user:
        return

    upline = await HierarchyResolver(session).get_upline(user.id, max_depth=depth)
    await answer_long(message, format_upline(upline))


@router.message(Command("downline"))
async def cmd_downline(
    message: Message,
    session: AsyncSession,
    **data: Any,
) -> None:
    """/downline <user> [depth] - downline tree."""
    args = parse_args(message)
    if not args:
        await message.answer("Usage: /downline <user id | email | code> [depth]")
        return

    depth = parse_depth(args[1] if len(args) > 1 else None, DEFAULT_DOWNLINE_DISPLAY_DEPTH)
    if depth is None:
        await message.answer("❌ Depth must be a positive number")
        return

    user = await resolve_user_or_answer(message, session, args[0])
    if not user:
        return

    tree = await HierarchyResolver(session).get_downline(user.id, max_depth=depth)
    await answer_long(message, format_downline(tree))


@router.message(Command("team"))
async def cmd_team(
    message: Message,
    session: AsyncSession,
    **data: Any,
) -> None:
    """/team <user> - direct team with deal activity."""
    args = parse_args(message)
    if not args:
        await message.answer("Usage: /team <user id | email | code>")
        return

    user = await resolve_user_or_answer(message, session, args[0])
    if not user:
        return

    activity = await TeamActivityService(session).get_team_activity(user.id)
    await answer_long(message, format_team_activity(activity))


@router.message(Command("diagnose"))
async def cmd_diagnose(
    message: Message,
    session: AsyncSession,
    **data: Any,
) -> None:
    """/diagnose <user> | all - compare the cache with the live chain."""
    args = parse_args(message)
    if not args:
        await message.answer("Usage: /diagnose <user id | email | code> | all")
        return

    reconciler = HierarchyReconciler(session)

    if args[0].lower() == "all":
        reports = await reconciler.diagnose_all()
        if not reports:
            await message.answer("✅ Every cached hierarchy matches the live chain")
            return
        text = "\n\n".join(format_drift_report(report) for report in reports)
        await answer_long(message, f"⚠️ {len(reports)} inconsistent user(s)\n\n{text}")
        return

    # A deleted user can still have orphaned rows, so fall back to the raw ID
    user = await UserRepository(session).resolve(args[0])
    user_id = user.id if user else args[0]

    try:
        report = await reconciler.diagnose(user_id)
    except HierarchyError as e:
        await message.answer(f"❌ {e}")
        return

    await answer_long(message, format_drift_report(report))


@router.message(Command("repair"))
async def cmd_repair(
    message: Message,
    session: AsyncSession,
    actor: ActorContext,
    **data: Any,
) -> None:
    """/repair <user> <parent | root> [ancestor] - correct a user's upline."""
    args = parse_args(message)
    if len(args) < 2:
        await message.answer(
            "Usage: /repair <user> <new parent | root> [parent's new parent]"
        )
        return

    user = await resolve_user_or_answer(message, session, args[0])
    if not user:
        return

    parent_id = None
    if args[1].lower() not in ROOT_KEYWORDS:
        parent = await resolve_user_or_answer(message, session, args[1])
        if not parent:
            return
        parent_id = parent.id

    ancestor_id = None
    if len(args) > 2:
        if parent_id is None:
            await message.answer("❌ A root user cannot be given an ancestor")
            return
        ancestor = await resolve_user_or_answer(message, session, args[2])
        if not ancestor:
            return
        ancestor_id = ancestor.id

    user_id = user.id
    admin_id = actor.real_user.id
    try:
        result = await HierarchyReconciler(session).repair(
            user_id, parent_id, ancestor_id=ancestor_id
        )
    except HierarchyError as e:
        logger.warning(
            f"Repair of {user_id} refused: {e}",
            extra={"admin_id": admin_id, "reason": e.reason},
        )
        await message.answer(f"❌ Repair failed ({e.reason}): {e}")
        return

    logger.info(
        f"Admin {admin_id} repaired upline of {user_id}",
        extra={"admin_id": admin_id, "user_id": user_id, "parent_id": parent_id},
    )
    await answer_long(message, format_repair_result(result))


@router.message(Command("rebuild"))
async def cmd_rebuild(
    message: Message,
    session: AsyncSession,
    **data: Any,
) -> None:
    """/rebuild <user> | all - rebuild the hierarchy cache."""
    args = parse_args(message)
    if not args:
        await message.answer("Usage: /rebuild <user id | email | code> | all")
        return

    builder = HierarchyCacheBuilder(session)

    if args[0].lower() == "all":
        await message.answer("♻️ Rebuilding the whole hierarchy cache...")
        summary = await builder.rebuild_all()
        await answer_long(message, format_rebuild_summary(summary))
        return

    user = await resolve_user_or_answer(message, session, args[0])
    if not user:
        return

    user_id = user.id
    try:
        result = await builder.rebuild_hierarchy_for(user_id)
    except HierarchyError as e:
        await message.answer(f"❌ Rebuild failed: {e}")
        return

    text = f"♻️ Hierarchy of {user_id} rebuilt: {result.rows_written} row(s)"
    finding = result.dangling or result.cycle
    if finding:
        text += f"\n⚠️ {finding}"
    await message.answer(text)


@router.message(Command("impersonate"))
async def cmd_impersonate(
    message: Message,
    session: AsyncSession,
    state: FSMContext,
    actor: ActorContext,
    **data: Any,
) -> None:
    """/impersonate <user> - act as another user."""
    args = parse_args(message)
    if not args:
        await message.answer("Usage: /impersonate <user id | email | code>")
        return

    target = await resolve_user_or_answer(message, session, args[0])
    if not target:
        return

    try:
        keys = start_impersonation(actor, target)
    except PermissionError as e:
        await message.answer(f"🚫 {e}")
        return

    await state.update_data(keys)
    await message.answer(f"🎭 Now acting as {format_user(target)}")


@router.message(Command("stop_impersonation"))
async def cmd_stop_impersonation(
    message: Message,
    state: FSMContext,
    actor: ActorContext,
    **data: Any,
) -> None:
    """/stop_impersonation - return to the admin's own account."""
    if not actor.is_impersonating:
        await message.answer("You are not impersonating anyone")
        return

    await state.set_data(stop_impersonation(await state.get_data()))
    await message.answer(f"🎭 Back to {format_user(actor.real_user)}")
