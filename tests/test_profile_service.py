"""
Tests for profile persistence and the completion policy.
"""

import pytest

from careprofile.services.profile import (
    apply_profile_delta,
    completion_percentage,
    create_profile,
    get_profile_fields,
    get_profile_or_raise,
    is_profile_complete,
    ProfileNotFoundError,
)

CRITICAL = {
    "location": "Denver",
    "languages": ["English"],
    "care_types": ["infant care"],
    "hourly_rate": "$30/hour",
}


@pytest.mark.parametrize("covered, expected", [(0, 0), (1, 5), (3, 15), (20, 100)])
def test_completion_percentage(covered, expected):
    assert completion_percentage(covered, 20) == expected


def test_completion_percentage_rounds_half_up():
    assert completion_percentage(1, 8) == 13
    assert completion_percentage(0, 0) == 0


def test_profile_complete_needs_critical_and_most_high_priority():
    assert not is_profile_complete({})
    assert not is_profile_complete(CRITICAL)
    two_high = {**CRITICAL, "qualifications": ["CPR"], "start_date": "June"}
    assert not is_profile_complete(two_high)
    assert is_profile_complete({**two_high, "weekly_hours": "30"})
    missing_rate = {k: v for k, v in two_high.items() if k != "hourly_rate"}
    assert not is_profile_complete({**missing_rate, "weekly_hours": "30", "general_availability": "weekdays"})


async def test_apply_delta_merges_and_persists(db, session_factory):
    profile = await create_profile(db)
    await apply_profile_delta(db, profile.id, {"location": "Denver", "languages": ["English"]})
    merged = await apply_profile_delta(db, profile.id, {"languages": ["English", "Spanish"]})
    await db.commit()

    assert merged == {"location": "Denver", "languages": ["English", "Spanish"]}
    async with session_factory() as check:
        stored = await get_profile_or_raise(check, profile.id)
        assert stored.languages == '["English", "Spanish"]'
        assert get_profile_fields(stored) == merged
        assert stored.status == "in_progress"


async def test_apply_delta_unknown_profile(db):
    with pytest.raises(ProfileNotFoundError):
        await apply_profile_delta(db, "missing", {"location": "Denver"})
