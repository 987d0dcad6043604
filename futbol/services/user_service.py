"""
User service: the local mirror of identity-provider users plus league flags.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from futbol.database.models import (
    DayVote,
    MonthlyAvailability,
    MvpVoteStatus,
    ReminderStatus,
    User,
)
from futbol.services.exceptions import NotFoundError

logger = logging.getLogger(__name__)

NICKNAME_MIN_LENGTH = 2
NICKNAME_MAX_LENGTH = 30


def user_to_dict(user: User) -> Dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "nickname": user.nickname,
        "image_url": user.image_url,
        "is_admin": user.is_admin,
        "is_whitelisted": user.is_whitelisted,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


def display_name(user: Dict) -> str:
    """Nickname when set, otherwise the identity provider name."""
    return user.get("nickname") or user.get("name") or user.get("email") or user.get("id")


async def _get_user(session: AsyncSession, user_id: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: str) -> Optional[Dict]:
    """
    Get user by identity-provider id.

    Returns:
        User dictionary or None if not found
    """
    user = await _get_user(session, user_id)
    return user_to_dict(user) if user else None


async def get_users(session: AsyncSession, whitelisted_only: bool = False) -> List[Dict]:
    query = select(User).order_by(User.name.asc())
    if whitelisted_only:
        query = query.where(User.is_whitelisted == True)  # noqa: E712
    result = await session.execute(query)
    return [user_to_dict(u) for u in result.scalars().all()]


async def get_users_by_ids(session: AsyncSession, user_ids: Iterable[str]) -> Dict[str, Dict]:
    """Map of id -> user dict for the given ids. Unknown ids are skipped."""
    ids = list({uid for uid in user_ids if uid})
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)))
    return {u.id: user_to_dict(u) for u in result.scalars().all()}


async def get_admin_emails(session: AsyncSession) -> List[str]:
    result = await session.execute(select(User.email).where(User.is_admin == True))  # noqa: E712
    return [row[0] for row in result.all() if row[0]]


async def provision_user(
    session: AsyncSession,
    user_id: str,
    email: str,
    name: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Dict:
    """
    Create the local user on first sign-in.

    New users are neither admins nor whitelisted; an admin has to approve them
    before their votes count toward quorum.
    """
    if not user_id:
        raise ValueError("user_id is required")
    if not email:
        raise ValueError("email is required")

    existing = await _get_user(session, user_id)
    if existing:
        return user_to_dict(existing)

    user = User(
        id=user_id,
        email=email,
        name=name or email.split("@")[0],
        image_url=image_url,
        is_admin=False,
        is_whitelisted=False,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info(f"Provisioned user {user_id} ({email})")
    return user_to_dict(user)


def _identity_fields(data: Dict) -> Dict:
    """Extract email, name, nickname and image from an identity-provider user payload."""
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    email = next(
        (a.get("email_address") for a in addresses if a.get("id") == primary_id),
        addresses[0].get("email_address") if addresses else None,
    )
    full_name = f"{data.get('first_name') or ''} {data.get('last_name') or ''}".strip()
    return {
        "email": email,
        "name": full_name or data.get("username"),
        "nickname": data.get("username"),
        "image_url": data.get("image_url"),
    }


async def handle_identity_event(session: AsyncSession, event_type: str, data: Dict) -> Dict:
    """
    Apply a verified identity-provider webhook event to the local user table.

    user.created inserts a non-whitelisted, non-admin user. user.updated only
    touches identity fields, so admin and whitelist flags survive. user.deleted
    hard-deletes the user.
    """
    user_id = data.get("id")
    if not user_id:
        raise ValueError("No user ID provided")

    if event_type == "user.created":
        fields = _identity_fields(data)
        if not fields["email"]:
            raise ValueError("User has no email address")
        if await _get_user(session, user_id):
            return {"success": True, "message": "User already exists"}
        session.add(
            User(
                id=user_id,
                email=fields["email"],
                name=fields["name"] or "Unknown",
                nickname=fields["nickname"],
                image_url=fields["image_url"],
                is_admin=False,
                is_whitelisted=False,
            )
        )
        await session.commit()
        logger.info(f"Created user {user_id} from identity provider")
        return {"success": True, "message": "User created successfully"}

    if event_type == "user.updated":
        user = await _get_user(session, user_id)
        if user is None:
            return {"success": True, "message": "User not found in database"}
        fields = _identity_fields(data)
        user.email = fields["email"] or user.email
        user.name = fields["name"] or user.name
        user.nickname = fields["nickname"] or user.nickname
        user.image_url = fields["image_url"] or user.image_url
        await session.commit()
        logger.info(f"Updated user {user_id} from identity provider")
        return {"success": True, "message": "User updated successfully"}

    if event_type == "user.deleted":
        await delete_user(session, user_id)
        return {"success": True, "message": "User deleted successfully"}

    logger.debug(f"Ignoring identity event {event_type}")
    return {"success": True}


async def delete_user(session: AsyncSession, user_id: str) -> bool:
    """
    Hard-delete a user and the rows that belong to them.

    The user also leaves every open game; the waitlist fills their spot.

    Returns:
        True if a user was deleted
    """
    from futbol.services import game_service, waitlist_service

    user = await _get_user(session, user_id)
    if user is None:
        return False

    await waitlist_service.remove_user_from_open_games(session, user_id)
    for model, column in (
        (DayVote, DayVote.user_id),
        (MonthlyAvailability, MonthlyAvailability.user_id),
        (ReminderStatus, ReminderStatus.user_id),
        (MvpVoteStatus, MvpVoteStatus.voter_id),
    ):
        await session.execute(delete(model).where(column == user_id))
    await session.execute(delete(User).where(User.id == user_id))
    await game_service.commit_game_changes(session)
    logger.info(f"Deleted user {user_id}")
    return True


async def update_nickname(session: AsyncSession, user_id: str, nickname: Optional[str]) -> Dict:
    user = await _get_user(session, user_id)
    if user is None:
        raise NotFoundError("Usuario no encontrado")

    cleaned = (nickname or "").strip()
    if cleaned and not NICKNAME_MIN_LENGTH <= len(cleaned) <= NICKNAME_MAX_LENGTH:
        raise ValueError(
            f"El apodo debe tener entre {NICKNAME_MIN_LENGTH} y {NICKNAME_MAX_LENGTH} caracteres"
        )
    user.nickname = cleaned or None
    await session.commit()
    await session.refresh(user)
    return user_to_dict(user)


async def set_admin(session: AsyncSession, user_id: str, is_admin: bool) -> Dict:
    user = await _get_user(session, user_id)
    if user is None:
        raise NotFoundError("Usuario no encontrado")
    user.is_admin = is_admin
    await session.commit()
    await session.refresh(user)
    logger.info(f"User {user_id} admin flag set to {is_admin}")
    return user_to_dict(user)


async def set_whitelisted(session: AsyncSession, user_id: str, is_whitelisted: bool) -> Dict:
    user = await _get_user(session, user_id)
    if user is None:
        raise NotFoundError("Usuario no encontrado")
    user.is_whitelisted = is_whitelisted
    await session.commit()
    await session.refresh(user)
    logger.info(f"User {user_id} whitelist flag set to {is_whitelisted}")
    return user_to_dict(user)


async def bulk_upsert(session: AsyncSession, users: List[Dict]) -> Dict:
    """
    Insert or update many users at once (admin import).

    Returns:
        Dict with created and updated counts
    """
    created = 0
    updated = 0
    for data in users:
        user_id = data.get("id")
        email = data.get("email")
        if not user_id or not email:
            raise ValueError("Cada usuario necesita id y email")

        user = await _get_user(session, user_id)
        if user is None:
            user = User(id=user_id, email=email, name=data.get("name") or email.split("@")[0])
            session.add(user)
            created += 1
        else:
            user.email = email
            if data.get("name"):
                user.name = data["name"]
            updated += 1
        for flag in ("nickname", "image_url", "is_admin", "is_whitelisted"):
            if data.get(flag) is not None:
                setattr(user, flag, data[flag])
    await session.commit()
    logger.info(f"Bulk user upsert: {created} created, {updated} updated")
    return {"created": created, "updated": updated}
