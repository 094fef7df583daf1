"""Caregiver profile persistence: create, read (decoded), merge deltas, completion policy."""

import logging
import math
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from careprofile.core.constants import PROFILE_STATUS_COMPLETED, PROFILE_STATUS_IN_PROGRESS
from careprofile.db.models import CaregiverProfile
from careprofile.domain import (
    CRITICAL_FIELDS,
    FIELD_NAMES,
    HIGH_PRIORITY_FIELDS,
    TOTAL_FIELDS,
    has_value,
)
from careprofile.services.extractor import (
    from_storage_form,
    list_touched_fields,
    merge_profile_data,
    to_storage_form,
)

logger = logging.getLogger(__name__)


class ProfileNotFoundError(Exception):
    """Raised when a profile id does not exist."""


def completion_percentage(fields_covered: int, total_fields: int = TOTAL_FIELDS) -> int:
    """round(100 * covered / total), halves rounded up; 0 when there are no fields."""
    if total_fields <= 0:
        return 0
    return int(math.floor(100 * fields_covered / total_fields + 0.5))


def is_profile_complete(fields: Mapping[str, Any]) -> bool:
    """
    Stop condition: every critical field present and more than half of the
    high-priority fields present.
    """
    if not all(has_value(fields.get(name)) for name in CRITICAL_FIELDS):
        return False
    high_present = sum(1 for name in HIGH_PRIORITY_FIELDS if has_value(fields.get(name)))
    return high_present * 2 > len(HIGH_PRIORITY_FIELDS)


def profile_storage_columns(profile: CaregiverProfile) -> dict[str, Any]:
    """Raw column values for every schema field."""
    return {name: getattr(profile, name) for name in FIELD_NAMES}


def get_profile_fields(profile: CaregiverProfile) -> dict[str, Any]:
    """Decoded field values; placeholders filtered."""
    return from_storage_form(profile_storage_columns(profile))


async def create_profile(db: AsyncSession) -> CaregiverProfile:
    profile = CaregiverProfile(status=PROFILE_STATUS_IN_PROGRESS)
    db.add(profile)
    await db.flush()
    await db.refresh(profile)
    logger.info("Caregiver profile created: profile_id=%s", profile.id)
    return profile


async def get_profile(db: AsyncSession, profile_id: str) -> CaregiverProfile | None:
    result = await db.execute(select(CaregiverProfile).where(CaregiverProfile.id == profile_id))
    return result.scalar_one_or_none()


async def get_profile_or_raise(db: AsyncSession, profile_id: str) -> CaregiverProfile:
    profile = await get_profile(db, profile_id)
    if profile is None:
        raise ProfileNotFoundError(f"Profile not found: {profile_id}")
    return profile


async def list_profiles(db: AsyncSession) -> list[CaregiverProfile]:
    result = await db.execute(select(CaregiverProfile).order_by(CaregiverProfile.created_at.asc()))
    return list(result.scalars().all())


async def apply_profile_delta(
    db: AsyncSession,
    profile_id: str,
    delta: Mapping[str, Any],
) -> dict[str, Any]:
    """
    Read-modify-write: merge delta into the stored fields and write the changed columns.
    Returns the merged (decoded) fields. No cross-turn lock; concurrent turns are last-write-wins per field.
    """
    profile = await get_profile_or_raise(db, profile_id)
    existing = get_profile_fields(profile)
    merged = merge_profile_data(existing, delta)
    stored = to_storage_form({k: v for k, v in merged.items() if k in delta})
    for column, value in stored.items():
        setattr(profile, column, value)
    await db.flush()
    return merged


async def mark_profile_completed(db: AsyncSession, profile: CaregiverProfile) -> None:
    if profile.status == PROFILE_STATUS_COMPLETED:
        return
    profile.status = PROFILE_STATUS_COMPLETED
    await db.flush()
    logger.info("Caregiver profile completed: profile_id=%s", profile.id)


class ProfileService:
    """Facade for profile operations."""

    @staticmethod
    async def create(db: AsyncSession) -> CaregiverProfile:
        return await create_profile(db)

    @staticmethod
    async def get(db: AsyncSession, profile_id: str) -> CaregiverProfile | None:
        return await get_profile(db, profile_id)

    @staticmethod
    async def list_all(db: AsyncSession) -> list[CaregiverProfile]:
        return await list_profiles(db)

    @staticmethod
    def fields(profile: CaregiverProfile) -> dict[str, Any]:
        return get_profile_fields(profile)

    @staticmethod
    def touched_fields(profile: CaregiverProfile) -> list[str]:
        return list_touched_fields(get_profile_fields(profile))


profile_service = ProfileService()
