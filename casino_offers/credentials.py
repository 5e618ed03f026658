"""Credential providers for account logins.

The CLI decides where credentials come from (environment, prompt, or
environment with a prompt fallback) and hands a provider to the code that
logs in, so nothing else reads stdin or the environment directly.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import typer


class MissingCredentialsError(Exception):
    """No username/password available for an account label."""


@dataclass
class Credentials:
    username: str
    password: str = field(repr=False)


class CredentialProvider(ABC):
    """Supplies credentials for an account label such as "USER1"."""

    @abstractmethod
    def get(self, label: str) -> Credentials:
        ...


class EnvCredentialProvider(CredentialProvider):
    """Reads ``<LABEL>_USERNAME`` and ``<LABEL>_PASSWORD`` from the environment."""

    def __init__(self, environ: Optional[dict] = None):
        self.environ = os.environ if environ is None else environ

    def get(self, label: str) -> Credentials:
        prefix = label.upper()
        username = self.environ.get(f"{prefix}_USERNAME")
        password = self.environ.get(f"{prefix}_PASSWORD")
        if not username or not password:
            raise MissingCredentialsError(
                f"{prefix}_USERNAME and {prefix}_PASSWORD must be set in the environment or .env file"
            )
        return Credentials(username=username, password=password)


class PromptCredentialProvider(CredentialProvider):
    """Asks on the terminal, hiding the password."""

    def get(self, label: str) -> Credentials:
        username = typer.prompt(f"👤 {label} username")
        password = typer.prompt(f"🔐 {label} password", hide_input=True)
        if not username or not password:
            raise MissingCredentialsError(f"No credentials entered for {label}")
        return Credentials(username=username, password=password)


class FallbackCredentialProvider(CredentialProvider):
    """Tries each provider in turn until one has credentials."""

    def __init__(self, *providers: CredentialProvider):
        self.providers = providers

    def get(self, label: str) -> Credentials:
        last_error: Optional[MissingCredentialsError] = None
        for provider in self.providers:
            try:
                return provider.get(label)
            except MissingCredentialsError as e:
                last_error = e
        raise last_error or MissingCredentialsError(f"No credential provider for {label}")
