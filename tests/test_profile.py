from __future__ import annotations

import pytest

from consultant_agent.config import CompanySize
from consultant_agent.profile import (
    SAVE_FAILED_MESSAGE,
    BusinessProfile,
    ProfileCollector,
    ProfileValidationError,
    validate_profile,
)
from consultant_agent.profile_store import ProfileRepository, ProfileStoreError


class FailingRepository(ProfileRepository):
    def create_record(self, user_id, profile):
        raise ProfileStoreError("disk full")


def test_valid_profile_has_no_errors(profile_data):
    assert validate_profile(profile_data) == {}


def test_missing_fields_are_reported(profile_data):
    profile_data["fullName"] = "   "
    profile_data.pop("industry")

    errors = validate_profile(profile_data)

    assert errors == {
        "full_name": "Full name is required",
        "industry": "Industry is required",
    }


def test_description_is_optional(profile_data):
    profile_data.pop("businessDescription")

    assert validate_profile(profile_data) == {}


@pytest.mark.parametrize("email", ["dana", "dana@", "dana@example", "da na@x.io"])
def test_invalid_email(profile_data, email):
    profile_data["companyEmail"] = email

    assert validate_profile(profile_data) == {
        "company_email": "Please enter a valid email address"
    }


@pytest.mark.parametrize("phone", ["0123456", "abc", "+1 555 12345678901234"])
def test_invalid_phone(profile_data, phone):
    profile_data["contactNumber"] = phone

    assert validate_profile(profile_data) == {
        "contact_number": "Please enter a valid phone number"
    }


def test_phone_separators_are_ignored(profile_data):
    profile_data["contactNumber"] = "(555) 201-3344"

    assert validate_profile(profile_data) == {}


def test_snake_case_keys_are_accepted(profile_data):
    snake = {
        "full_name": profile_data["fullName"],
        "company_name": profile_data["companyName"],
        "company_email": profile_data["companyEmail"],
        "contact_number": profile_data["contactNumber"],
        "job_title": profile_data["jobTitle"],
        "company_size": CompanySize.SMALL,
        "industry": profile_data["industry"],
    }

    profile = BusinessProfile.from_dict(snake)

    assert profile.company_size is CompanySize.SMALL
    assert profile.business_description is None
    assert profile.to_dict()["companySize"] == "11-50"


def test_submit_persists_and_loads(tmp_path, profile_data):
    repository = ProfileRepository(tmp_path / "profiles.jsonl", None)
    collector = ProfileCollector(repository)

    profile = collector.submit("user-1", profile_data)
    loaded = collector.load("user-1")

    assert profile.company_name == "Blue Harbor Coffee"
    assert loaded == profile
    assert collector.load("someone-else") is None


def test_invalid_submission_is_not_persisted(tmp_path, profile_data):
    repository = ProfileRepository(tmp_path / "profiles.jsonl", None)
    collector = ProfileCollector(repository)
    profile_data["companyEmail"] = "nope"

    with pytest.raises(ProfileValidationError) as excinfo:
        collector.submit("user-1", profile_data)

    assert "company_email" in excinfo.value.errors
    assert list(repository.iter_records()) == []


def test_persistence_failure_is_reported_on_email(tmp_path, profile_data):
    collector = ProfileCollector(
        FailingRepository(tmp_path / "profiles.jsonl", None)
    )

    with pytest.raises(ProfileValidationError) as excinfo:
        collector.submit("user-1", profile_data)

    assert excinfo.value.errors == {"company_email": SAVE_FAILED_MESSAGE}


class UnreachableRedis:
    def set(self, key, value):
        raise ConnectionError("Connection refused")

    def get(self, key):
        raise ConnectionError("Connection refused")

    def zadd(self, key, mapping):
        raise ConnectionError("Connection refused")


def test_submit_succeeds_when_redis_is_down(tmp_path, profile_data):
    repository = ProfileRepository(
        tmp_path / "profiles.jsonl",
        "redis://localhost:6379/0",
        client=UnreachableRedis(),
    )
    collector = ProfileCollector(repository)

    profile = collector.submit("user-1", profile_data)

    assert len(list(repository.iter_records())) == 1
    assert collector.load("user-1") == profile
