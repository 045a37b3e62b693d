"""
Help command handler.

Shows who the bot thinks you are and the admin commands it understands.
"""

from typing import Any

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from app.services.actor_context import ActorContext
from bot.utils.formatters import format_user


router = Router(name="help")

ADMIN_COMMANDS = (
    "/upline <user> [depth] - upline, nearest sponsor first\n"
    "/downline <user> [depth] - downline tree\n"
    "/team <user> - direct team and deal activity\n"
    "/diagnose <user> | all - compare cache with live chain\n"
    "/repair <user> <parent | root> [ancestor] - correct an upline\n"
    "/rebuild <user> | all - rebuild the hierarchy cache\n"
    "/impersonate <user> - act as another user\n"
    "/stop_impersonation - back to your own account"
)


@router.message(CommandStart())
@router.message(Command("help"))
async def cmd_help(
    message: Message,
    actor: ActorContext | None = None,
    **data: Any,
) -> None:
    """Handle /start and /help."""
    if actor is None:
        await message.answer(
            "👋 Partner hierarchy admin bot.\n\n"
            "This Telegram account is not linked to a CRM user."
        )
        return

    lines = [f"👤 Signed in as {format_user(actor.effective_user)}"]
    if actor.is_impersonating:
        lines.append(f"🎭 Impersonating, real account: {format_user(actor.real_user)}")
    if actor.is_admin:
        lines.extend(["", ADMIN_COMMANDS])
    else:
        lines.append("Admin commands are not available for this account.")
    await message.answer("\n".join(lines))
