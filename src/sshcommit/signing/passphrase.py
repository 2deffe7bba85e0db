"""
Passphrase Module

Passphrase suppliers are zero-argument callables returning the passphrase for
an encrypted private key. Interactive prompting lives here so the rest of the
signing pipeline never blocks on user input.
"""

import getpass
import os
from typing import Callable, Optional, Union

Passphrase = Union[str, bytes]
PassphraseSupplier = Callable[[], Passphrase]


class StaticPassphrase:
    """Always returns the same passphrase."""

    def __init__(self, passphrase: Passphrase):
        self._passphrase = passphrase

    def __call__(self) -> Passphrase:
        return self._passphrase


class PromptPassphrase:
    """Prompts on the terminal without echo."""

    def __init__(self, prompt: str = "SSH key passphrase: ", stream=None):
        self.prompt = prompt
        self.stream = stream

    def __call__(self) -> Passphrase:
        return getpass.getpass(self.prompt, stream=self.stream)


class EnvironmentPassphrase:
    """Reads the passphrase from an environment variable."""

    def __init__(self, variable: str = "SSHCOMMIT_PASSPHRASE"):
        self.variable = variable

    def __call__(self) -> Passphrase:
        value = os.getenv(self.variable)
        if value is None:
            raise KeyError(f"Environment variable {self.variable} is not set")
        return value


class CachedPassphrase:
    """
    Wraps another supplier and remembers the first value it returns.

    ``forget()`` clears the cache, e.g. after the cached value failed to
    decrypt a key.
    """

    def __init__(self, inner: PassphraseSupplier):
        self._inner = inner
        self._cached: Optional[Passphrase] = None

    def __call__(self) -> Passphrase:
        if self._cached is None:
            self._cached = self._inner()
        return self._cached

    def forget(self) -> None:
        self._cached = None
