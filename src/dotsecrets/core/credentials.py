"""Passphrase providers handed to the orchestrator and backends."""

from abc import ABC, abstractmethod

import click

from dotsecrets.errors import ConfigError


class PassphraseProvider(ABC):
    @abstractmethod
    def get_passphrase(self, confirm: bool = False) -> str:
        """Return the passphrase, asking twice when ``confirm`` is set."""
        ...


class StaticPassphrase(PassphraseProvider):
    """Pre-supplied passphrase, e.g. from SECRETS_PASSPHRASE."""

    def __init__(self, value: str):
        if not value:
            raise ConfigError("Passphrase must not be empty")
        self._value = value

    def get_passphrase(self, confirm: bool = False) -> str:
        return self._value


class PromptPassphrase(PassphraseProvider):
    """Interactive hidden prompt, asked at most once per provider."""

    def __init__(self, prompt: str = "Secrets passphrase"):
        self.prompt = prompt
        self._value: str | None = None

    def get_passphrase(self, confirm: bool = False) -> str:
        if self._value is None:
            value = click.prompt(
                self.prompt,
                hide_input=True,
                confirmation_prompt=confirm,
                err=True,
            )
            if not value:
                raise ConfigError("Passphrase must not be empty")
            self._value = value
        return self._value
