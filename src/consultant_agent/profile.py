"""Business profile collection and validation."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .config import CompanySize
from .profile_store import ProfileRepository, ProfileStoreError

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[+]?[1-9]\d{0,15}$")
PHONE_SEPARATORS_RE = re.compile(r"[\s\-()]")

SAVE_FAILED_MESSAGE = "Failed to save profile. Please try again."

PROFILE_FIELDS = (
    "full_name",
    "company_name",
    "company_email",
    "contact_number",
    "job_title",
    "company_size",
    "industry",
    "business_description",
)

_WIRE_KEYS = {
    "full_name": "fullName",
    "company_name": "companyName",
    "company_email": "companyEmail",
    "contact_number": "contactNumber",
    "job_title": "jobTitle",
    "company_size": "companySize",
    "industry": "industry",
    "business_description": "businessDescription",
}

_REQUIRED_MESSAGES = {
    "full_name": "Full name is required",
    "company_name": "Company name is required",
    "company_email": "Company email is required",
    "contact_number": "Contact number is required",
    "job_title": "Job title is required",
    "company_size": "Company size is required",
    "industry": "Industry is required",
}


class ProfileValidationError(ValueError):
    """Raised when a profile submission is rejected.

    ``errors`` maps each offending field to a user-facing message.
    """

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors: Dict[str, str] = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Invalid business profile fields: {fields}")


@dataclass(frozen=True, slots=True)
class BusinessProfile:
    """Verified identity and company record collected once per user."""

    full_name: str
    company_name: str
    company_email: str
    contact_number: str
    job_title: str
    company_size: CompanySize
    industry: str
    business_description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for field_name, wire_key in _WIRE_KEYS.items():
            value = getattr(self, field_name)
            if isinstance(value, CompanySize):
                value = value.value
            payload[wire_key] = value if value is not None else ""
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BusinessProfile":
        fields = normalize_fields(data)
        description = fields.get("business_description") or None
        return cls(
            full_name=fields["full_name"],
            company_name=fields["company_name"],
            company_email=fields["company_email"],
            contact_number=fields["contact_number"],
            job_title=fields["job_title"],
            company_size=CompanySize.from_string(fields["company_size"]),
            industry=fields["industry"],
            business_description=description,
        )


def normalize_fields(data: Mapping[str, Any]) -> Dict[str, str]:
    """Accept snake_case or camelCase keys and return trimmed strings."""

    fields: Dict[str, str] = {}
    for field_name, wire_key in _WIRE_KEYS.items():
        raw = data.get(field_name)
        if raw is None:
            raw = data.get(wire_key)
        if isinstance(raw, CompanySize):
            raw = raw.value
        fields[field_name] = "" if raw is None else str(raw).strip()
    return fields


def validate_profile(data: Mapping[str, Any]) -> Dict[str, str]:
    """Return a mapping of invalid fields to messages (empty when valid)."""

    fields = normalize_fields(data)
    errors: Dict[str, str] = {}
    for field_name, message in _REQUIRED_MESSAGES.items():
        if not fields[field_name]:
            errors[field_name] = message

    email = fields["company_email"]
    if email and not EMAIL_RE.match(email):
        errors["company_email"] = "Please enter a valid email address"

    phone = fields["contact_number"]
    if phone and not PHONE_RE.match(PHONE_SEPARATORS_RE.sub("", phone)):
        errors["contact_number"] = "Please enter a valid phone number"

    size = fields["company_size"]
    if size:
        try:
            CompanySize.from_string(size)
        except ValueError:
            errors["company_size"] = "Please select a valid company size"
    return errors


class ProfileCollector:
    """Validates profile submissions and persists accepted ones."""

    def __init__(self, repository: ProfileRepository) -> None:
        self._repository = repository

    def submit(self, user_id: str, data: Mapping[str, Any]) -> BusinessProfile:
        errors = validate_profile(data)
        if errors:
            raise ProfileValidationError(errors)
        profile = BusinessProfile.from_dict(data)

        try:
            record = profile.to_dict()
            self._repository.create_record(user_id, record)
            self._repository.put(user_id, record)
        except ProfileStoreError:
            logger.exception("Error saving business profile for %s", user_id)
            raise ProfileValidationError(
                {"company_email": SAVE_FAILED_MESSAGE}
            ) from None
        logger.info("Business profile saved for user %s", user_id)
        return profile

    def load(self, user_id: str) -> Optional[BusinessProfile]:
        try:
            stored = self._repository.get(user_id)
        except ProfileStoreError:
            logger.exception("Error loading business profile for %s", user_id)
            return None
        if stored is None:
            return None
        if validate_profile(stored):
            logger.warning("Ignoring incomplete stored profile for %s", user_id)
            return None
        return BusinessProfile.from_dict(stored)
