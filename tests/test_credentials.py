"""Tests for credential providers."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

import casino_offers.credentials as credentials_mod
from casino_offers.credentials import (
    CredentialProvider,
    Credentials,
    EnvCredentialProvider,
    FallbackCredentialProvider,
    MissingCredentialsError,
    PromptCredentialProvider,
)


class StaticProvider(CredentialProvider):
    def __init__(self, creds=None):
        self.creds = creds
        self.asked = []

    def get(self, label):
        self.asked.append(label)
        if self.creds is None:
            raise MissingCredentialsError(f"nothing for {label}")
        return self.creds


def test_env_provider_reads_label_variables():
    provider = EnvCredentialProvider({"USER2_USERNAME": "second@example.com", "USER2_PASSWORD": "pw2"})
    creds = provider.get("user2")
    assert creds == Credentials("second@example.com", "pw2")


def test_env_provider_missing():
    with pytest.raises(MissingCredentialsError, match="USER1_USERNAME"):
        EnvCredentialProvider({"USER1_USERNAME": "only-name"}).get("USER1")


def test_password_not_in_repr():
    assert "hunter2" not in repr(Credentials("guest", "hunter2"))


def test_prompt_provider(monkeypatch):
    answers = iter(["guest@example.com", "secret"])
    prompts = []

    def fake_prompt(text, hide_input=False):
        prompts.append((text, hide_input))
        return next(answers)

    monkeypatch.setattr(credentials_mod.typer, "prompt", fake_prompt)
    creds = PromptCredentialProvider().get("USER1")
    assert creds == Credentials("guest@example.com", "secret")
    assert [hidden for _, hidden in prompts] == [False, True]


def test_fallback_uses_first_available():
    first = StaticProvider()
    second = StaticProvider(Credentials("b", "pw"))
    third = StaticProvider(Credentials("c", "pw"))
    creds = FallbackCredentialProvider(first, second, third).get("USER1")
    assert creds.username == "b"
    assert first.asked == ["USER1"]
    assert third.asked == []


def test_fallback_all_missing():
    with pytest.raises(MissingCredentialsError, match="nothing for USER1"):
        FallbackCredentialProvider(StaticProvider(), StaticProvider()).get("USER1")
    with pytest.raises(MissingCredentialsError):
        FallbackCredentialProvider().get("USER1")
