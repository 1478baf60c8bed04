from __future__ import annotations

import pytest

from consultant_agent.config import AppSettings, CompanySize


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("MAF_MODEL", "gpt-4o")
    monkeypatch.setenv("MAF_MODEL_API_KEY", "secret")
    monkeypatch.setenv("MAF_OUTPUT_DIR", str(tmp_path / "out"))
    monkeypatch.delenv("MAF_PROFILE_JSONL", raising=False)
    monkeypatch.delenv("MAF_ASSESSMENT_THRESHOLD", raising=False)
    monkeypatch.delenv("MAF_REDIS_URL", raising=False)
    monkeypatch.delenv("MAF_MODEL_PROVIDER", raising=False)
    return monkeypatch


def test_load_defaults(env, tmp_path):
    settings = AppSettings.load()

    assert settings.model.provider == "azure-openai"
    assert settings.model.model == "gpt-4o"
    assert settings.output_dir == tmp_path / "out"
    assert settings.output_dir.is_dir()
    assert settings.profile_log == tmp_path / "out" / "profiles.jsonl"
    assert settings.redis_url == "redis://localhost:6379/0"
    assert settings.assessment_threshold == 4


def test_blank_redis_url_disables_mirror(env):
    env.setenv("MAF_REDIS_URL", "  ")

    assert AppSettings.load().redis_url is None


def test_missing_model_is_an_error(env):
    env.delenv("MAF_MODEL")

    with pytest.raises(RuntimeError, match="MAF_MODEL"):
        AppSettings.load()


@pytest.mark.parametrize("raw", ["four", "0"])
def test_invalid_assessment_threshold(env, raw):
    env.setenv("MAF_ASSESSMENT_THRESHOLD", raw)

    with pytest.raises(RuntimeError, match="MAF_ASSESSMENT_THRESHOLD"):
        AppSettings.load()


def test_company_size_parsing():
    assert CompanySize.from_string(" 51 - 200 ") is CompanySize.MEDIUM
    assert CompanySize.ENTERPRISE.label == "1000+ employees (Enterprise)"
    assert CompanySize.from_string("", default=CompanySize.SMALL) is CompanySize.SMALL
    with pytest.raises(ValueError):
        CompanySize.from_string("5000")
