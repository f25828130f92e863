from __future__ import annotations

import threading
from typing import List

import pytest
from sqlmodel import Session, select

from app.core.db import get_engine
from app.modules.ai_config.errors import AiConfigValidationError, CredentialCorruptionError, NotConfiguredError
from app.modules.ai_config.models import AiConfig
from app.modules.ai_config.service import (
    CLEAR,
    UNCHANGED,
    ConfigPatch,
    SetTo,
    config_defaults,
    get_active,
    parse_patch,
    require_active,
    upsert_active,
)

USER = "user-ai-1"


def _rows(user_id: str = USER) -> List[AiConfig]:
    with Session(get_engine()) as s:
        return list(s.exec(select(AiConfig).where(AiConfig.user_id == user_id)).all())


def _active_count(user_id: str = USER) -> int:
    return sum(1 for r in _rows(user_id) if r.is_active)


# --- parse_patch ---
def test_parse_patch_distinguishes_absent_null_and_value():
    patch = parse_patch({"credential": None, "baseUrl": "https://x.example.com/v1/", "model": " gpt-4o "})
    assert patch.provider is UNCHANGED
    assert patch.credential is CLEAR
    assert patch.base_url == SetTo("https://x.example.com/v1")
    assert patch.model == SetTo("gpt-4o")
    assert patch.is_active is UNCHANGED


def test_parse_patch_blank_credential_clears():
    assert parse_patch({"credential": "   "}).credential is CLEAR
    assert parse_patch({"baseUrl": ""}).base_url is CLEAR


@pytest.mark.parametrize(
    "body, field",
    [
        ({"provider": "azure"}, "provider"),
        ({"provider": None}, "provider"),
        ({"provider": 3}, "provider"),
        ({"credential": 123}, "credential"),
        ({"baseUrl": 42}, "baseUrl"),
        ({"baseUrl": "not a url"}, "baseUrl"),
        ({"model": ""}, "model"),
        ({"model": "   "}, "model"),
        ({"model": None}, "model"),
        ({"isActive": "yes"}, "isActive"),
        ({"isActive": None}, "isActive"),
        ({"credential": "x" * 5000}, "credential"),
        ({"model": "m" * 201}, "model"),
    ],
)
def test_parse_patch_rejects_bad_fields(body, field):
    with pytest.raises(AiConfigValidationError) as ei:
        parse_patch(body)
    assert ei.value.field == field
    assert field in ei.value.message


def test_parse_patch_provider_message_lists_accepted_values():
    with pytest.raises(AiConfigValidationError) as ei:
        parse_patch({"provider": "azure"})
    assert ei.value.message == "provider must be one of: openai, anthropic, google, ollama, lmstudio, custom"


def test_parse_patch_rejects_non_object_body():
    with pytest.raises(AiConfigValidationError):
        parse_patch(["provider", "openai"])


# --- get_active / upsert_active ---
def test_no_config_returns_none_and_defaults_suggest_first_provider(cipher):
    assert get_active(USER, cipher=cipher) is None
    assert config_defaults() == {
        "provider": "openai",
        "model": "gpt-4o-mini",
        "base_url": "https://api.openai.com/v1",
    }
    with pytest.raises(NotConfiguredError):
        require_active(USER, cipher=cipher)


def test_upsert_then_get(cipher):
    patch = parse_patch({"provider": "openai", "credential": "sk-abc", "model": "gpt-4o-mini"})
    saved = upsert_active(USER, patch, cipher=cipher)

    got = get_active(USER, cipher=cipher)
    assert got == saved
    assert got.has_credential is True
    assert got.masked_credential == "sk***bc"
    assert got.model == "gpt-4o-mini"
    assert got.is_active is True
    assert got.effective_base_url == "https://api.openai.com/v1"

    # stored encrypted, never plaintext
    (row,) = _rows()
    assert row.api_key and "sk-abc" not in row.api_key
    assert cipher.decrypt(row.api_key) == "sk-abc"


def test_credential_not_in_repr(cipher):
    saved = upsert_active(USER, parse_patch({"credential": "sk-very-secret-value"}), cipher=cipher)
    assert "sk-very-secret-value" not in repr(saved)


def test_empty_patch_creates_default_config(cipher):
    saved = upsert_active(USER, ConfigPatch(), cipher=cipher)
    assert saved.provider == "openai"
    assert saved.model == "gpt-4o-mini"
    assert saved.base_url is None
    assert saved.has_credential is False


def test_only_one_active_row_after_upsert(cipher, make_config):
    make_config(provider="anthropic", model="claude-3-5-haiku-latest", age_s=30)
    make_config(provider="google", model="gemini-2.5-flash", age_s=20)
    make_config(provider="ollama", model="llama3.2", is_active=True, age_s=10)

    saved = upsert_active(USER, parse_patch({"isActive": True, "model": "llama3.1"}), cipher=cipher)

    assert _active_count() == 1
    assert len(_rows()) == 3
    assert saved.provider == "ollama"
    assert saved.model == "llama3.1"


def test_other_users_are_untouched(cipher, make_config):
    make_config(user_id="someone-else", is_active=True)
    upsert_active(USER, parse_patch({"credential": "sk-abc"}), cipher=cipher)
    assert _active_count("someone-else") == 1
    assert _active_count(USER) == 1


def test_provider_change_without_credential_clears_it(cipher):
    upsert_active(USER, parse_patch({"provider": "openai", "credential": "sk-abc"}), cipher=cipher)
    changed = upsert_active(USER, parse_patch({"provider": "anthropic"}), cipher=cipher)

    assert changed.provider == "anthropic"
    assert changed.has_credential is False
    assert changed.masked_credential is None
    (row,) = _rows()
    assert row.api_key is None


def test_provider_change_with_credential_keeps_new_one(cipher):
    upsert_active(USER, parse_patch({"provider": "openai", "credential": "sk-abc"}), cipher=cipher)
    changed = upsert_active(
        USER, parse_patch({"provider": "anthropic", "credential": "sk-ant-123456789"}), cipher=cipher
    )
    assert changed.credential == "sk-ant-123456789"


def test_same_provider_keeps_credential_when_absent(cipher):
    upsert_active(USER, parse_patch({"credential": "sk-abc"}), cipher=cipher)
    updated = upsert_active(USER, parse_patch({"model": "gpt-4.1-mini"}), cipher=cipher)
    assert updated.credential == "sk-abc"
    assert updated.model == "gpt-4.1-mini"


def test_explicit_null_clears_credential_and_base_url(cipher):
    upsert_active(
        USER, parse_patch({"credential": "sk-abc", "baseUrl": "https://proxy.example.com/v1"}), cipher=cipher
    )
    cleared = upsert_active(USER, parse_patch({"credential": None, "baseUrl": None}), cipher=cipher)
    assert cleared.has_credential is False
    assert cleared.base_url is None
    assert cleared.effective_base_url == "https://api.openai.com/v1"


def test_base_url_kept_when_absent(cipher):
    upsert_active(USER, parse_patch({"baseUrl": "https://proxy.example.com/v1/"}), cipher=cipher)
    kept = upsert_active(USER, parse_patch({"model": "gpt-4o"}), cipher=cipher)
    assert kept.base_url == "https://proxy.example.com/v1"


def test_programmatic_patch_values_are_normalized(cipher):
    saved = upsert_active(
        USER,
        ConfigPatch(model=SetTo("  "), credential=SetTo("  "), base_url=SetTo("https://h.example.com/")),
        cipher=cipher,
    )
    assert saved.model == "gpt-4o-mini"
    assert saved.has_credential is False
    assert saved.base_url == "https://h.example.com"


def test_is_active_false_only_touches_the_edited_row(cipher, make_config):
    other = make_config(provider="anthropic", is_active=True, age_s=60)
    target = make_config(provider="openai", is_active=False, age_s=120)

    saved = upsert_active(USER, parse_patch({"isActive": False}), cipher=cipher)
    assert saved.id == other
    assert saved.is_active is False
    assert _active_count() == 0
    assert {r.id for r in _rows()} == {other, target}


def test_blank_stored_model_is_replaced_by_default(cipher, make_config):
    make_config(provider="google", model="   ", is_active=True)
    got = get_active(USER, cipher=cipher)
    assert got.model == "gemini-2.5-flash"


def test_fallback_to_most_recent_row_when_none_active(cipher, make_config):
    make_config(provider="anthropic", age_s=100)
    newest = make_config(provider="google", age_s=5)

    got = get_active(USER, cipher=cipher)
    assert got.id == newest
    assert got.is_active is False

    # upsert repairs it: the picked row becomes the single active one
    saved = upsert_active(USER, ConfigPatch(), cipher=cipher)
    assert saved.id == newest and saved.is_active is True
    assert _active_count() == 1


def test_undecryptable_credential_is_corruption_not_absence(cipher, make_config):
    make_config(api_key="bm90.cmVhbA.YmxvYg", is_active=True)
    with pytest.raises(CredentialCorruptionError) as ei:
        get_active(USER, cipher=cipher)
    assert "Re-save" in ei.value.message


def test_unknown_stored_provider_is_corruption(cipher, make_config):
    make_config(provider="azure", is_active=True)
    with pytest.raises(CredentialCorruptionError):
        get_active(USER, cipher=cipher)


def test_updated_at_is_monotonic(cipher, make_config):
    future = "2999-01-01T00:00:00.000Z"
    make_config(is_active=True, age_s=0)
    with Session(get_engine()) as s, s.begin():
        row = s.exec(select(AiConfig).where(AiConfig.user_id == USER)).one()
        row.updated_at = future
        s.add(row)

    saved = upsert_active(USER, parse_patch({"model": "gpt-4o"}), cipher=cipher)
    assert saved.updated_at == future


def test_concurrent_upserts_leave_one_active_row(cipher, make_config):
    for age in (50, 40, 30, 20):
        make_config(provider="openai", age_s=age)

    providers = ["openai", "anthropic", "google", "ollama", "lmstudio", "custom"] * 2
    errors: List[BaseException] = []

    def worker(p: str) -> None:
        try:
            upsert_active(USER, parse_patch({"provider": p, "isActive": True}), cipher=cipher)
        except BaseException as e:  # surfaced below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(p,)) for p in providers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert _active_count() == 1
    assert len(_rows()) == 4
