"""Configuration helpers for the marketing consultant service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from importlib import import_module
from pathlib import Path
from typing import Optional


class CompanySize(str, Enum):
    """Company size buckets offered on the profile form."""

    STARTUP = "1-10"
    SMALL = "11-50"
    MEDIUM = "51-200"
    LARGE = "201-1000"
    ENTERPRISE = "1000+"

    @property
    def label(self) -> str:
        return _COMPANY_SIZE_LABELS[self]

    @classmethod
    def from_string(
        cls,
        size: str | None,
        default: Optional["CompanySize"] = None,
    ) -> "CompanySize":
        """Normalize arbitrary user input into a valid size bucket."""
        if not size:
            if default is None:
                raise ValueError("Company size is required.")
            return default
        normalized = size.strip().replace(" ", "")
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        if default is not None:
            return default
        raise ValueError(f"Unsupported company size: {size}")


_COMPANY_SIZE_LABELS = {
    CompanySize.STARTUP: "1-10 employees (Startup)",
    CompanySize.SMALL: "11-50 employees (Small)",
    CompanySize.MEDIUM: "51-200 employees (Medium)",
    CompanySize.LARGE: "201-1000 employees (Large)",
    CompanySize.ENTERPRISE: "1000+ employees (Enterprise)",
}


@dataclass(slots=True)
class ModelSettings:
    """Holds model-related configuration for the runtime."""

    provider: str
    model: str
    endpoint: Optional[str]
    api_key: str
    api_version: Optional[str]


@dataclass(slots=True)
class AppSettings:
    """Top-level application settings loaded from environment variables."""

    model: ModelSettings
    output_dir: Path
    profile_log: Path
    redis_url: Optional[str]
    assessment_threshold: int = 4

    @classmethod
    def load(cls) -> "AppSettings":
        """Load settings from the environment or .env file."""
        _ensure_dotenv()
        provider = os.getenv("MAF_MODEL_PROVIDER", "azure-openai")
        model = os.getenv("MAF_MODEL")
        if not model:
            raise RuntimeError("MAF_MODEL environment variable is required.")
        endpoint = os.getenv("MAF_MODEL_ENDPOINT")
        api_key = os.getenv("MAF_MODEL_API_KEY")
        if not api_key:
            raise RuntimeError(
                "MAF_MODEL_API_KEY environment variable is required."
            )
        api_version = os.getenv("MAF_MODEL_API_VERSION")
        output_dir = Path(os.getenv("MAF_OUTPUT_DIR", "outputs"))
        output_dir.mkdir(parents=True, exist_ok=True)
        profile_log = Path(
            os.getenv("MAF_PROFILE_JSONL", str(output_dir / "profiles.jsonl"))
        )
        profile_log.parent.mkdir(parents=True, exist_ok=True)
        redis_url: Optional[str] = os.getenv(
            "MAF_REDIS_URL", "redis://localhost:6379/0"
        )
        if redis_url is not None and not redis_url.strip():
            redis_url = None
        threshold_raw = os.getenv("MAF_ASSESSMENT_THRESHOLD", "4")
        try:
            assessment_threshold = int(threshold_raw)
        except ValueError as exc:
            raise RuntimeError(
                "MAF_ASSESSMENT_THRESHOLD must be an integer"
            ) from exc
        if assessment_threshold < 1:
            raise RuntimeError("MAF_ASSESSMENT_THRESHOLD must be at least 1")
        return cls(
            model=ModelSettings(
                provider=provider,
                model=model,
                endpoint=endpoint,
                api_key=api_key,
                api_version=api_version,
            ),
            output_dir=output_dir,
            profile_log=profile_log,
            redis_url=redis_url,
            assessment_threshold=assessment_threshold,
        )


def _ensure_dotenv() -> None:
    """Load dotenv variables and provide a helpful error if missing."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise RuntimeError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
