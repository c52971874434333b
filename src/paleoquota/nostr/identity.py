"""Signing identities for authored posts.

[IdentityProvider][paleoquota.nostr.identity.IdentityProvider] hands out the
[Keypair][paleoquota.nostr.identity.Keypair] used to sign the next post. By
default every call yields a fresh, unlinkable keypair; with
``persist_identity`` enabled one keypair is reused for the whole session,
optionally loaded from an environment variable.

Warning:
    Secret keys are held in memory only. They are never written to the post
    cache, configuration files, or logs. ``Keypair.__repr__`` shows only the
    public key.

Examples:
    ```python
    provider = IdentityProvider(IdentityConfig(persist_identity=True))
    keypair = provider.current()
    keypair.public_key          # 64-char hex
    ```
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from nostr_sdk import Keys, NostrSdkError
from pydantic import BaseModel, Field, model_validator

from paleoquota.core.exceptions import ConfigurationError
from paleoquota.core.logger import Logger


@dataclass(frozen=True, slots=True)
class Keypair:
    """A secp256k1 keypair wrapping ``nostr_sdk.Keys``.

    Equality and hashing use the public key only.

    Attributes:
        keys: The underlying ``nostr_sdk.Keys`` (secret + derived public key).
        public_key: 32-byte x-only public key as 64-char lowercase hex.
    """

    keys: Keys = field(repr=False, compare=False)
    public_key: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "public_key", self.keys.public_key().to_hex())

    @property
    def secret_key(self) -> str:
        """32-byte secret key as 64-char hex. Never log this value."""
        return self.keys.secret_key().to_hex()

    @classmethod
    def parse(cls, secret_key: str) -> Keypair:
        """Build a keypair from an ``nsec1`` bech32 or 64-char hex secret key.

        Raises:
            ValueError: If the secret key is malformed.
        """
        try:
            return cls(Keys.parse(secret_key))
        except NostrSdkError as e:
            raise ValueError(f"invalid secret key: {e}") from e


class IdentityConfig(BaseModel):
    """How authoring identities are chosen.

    Attributes:
        persist_identity: Reuse one keypair for every post of the session.
            When False, each submission is signed by a brand-new keypair.
        keys_env: Optional environment variable holding the session's secret
            key (nsec1 or hex). Only meaningful with ``persist_identity``.
    """

    persist_identity: bool = Field(
        default=False, description="Reuse one keypair for the whole session"
    )
    keys_env: str | None = Field(
        default=None,
        min_length=1,
        description="Environment variable holding the session secret key",
    )

    @model_validator(mode="after")
    def _keys_env_requires_persistence(self) -> IdentityConfig:
        if self.keys_env is not None and not self.persist_identity:
            raise ValueError("keys_env requires persist_identity to be true")
        return self


class IdentityProvider:
    """Generates and holds the keypairs that author posts."""

    def __init__(self, config: IdentityConfig | None = None) -> None:
        """Initialize the provider.

        Args:
            config: Identity settings. Defaults to a fresh keypair per post.

        Raises:
            ConfigurationError: If ``keys_env`` names an unset variable or
                holds a malformed key.
        """
        self._config = config or IdentityConfig()
        self._logger = Logger("identity")
        self._session: Keypair | None = None

        if self._config.keys_env is not None:
            self._session = self._load_from_env(self._config.keys_env)
            self._logger.info("identity_loaded", pubkey=self._session.public_key)

    @staticmethod
    def _load_from_env(env_var: str) -> Keypair:
        value = os.getenv(env_var)
        if not value:
            raise ConfigurationError(
                f"{env_var} environment variable is required. "
                "Generate one with: openssl rand -hex 32"
            )
        try:
            return Keypair.parse(value)
        except ValueError as e:
            raise ConfigurationError(f"{env_var} does not hold a valid secret key") from e

    @property
    def persist_identity(self) -> bool:
        return self._config.persist_identity

    @staticmethod
    def generate() -> Keypair:
        """Return a fresh keypair from a cryptographically secure source."""
        return Keypair(Keys.generate())

    @staticmethod
    def derive_public_key(secret_key: str) -> str:
        """Derive the 64-char hex public key for a secret key.

        Raises:
            ValueError: If the secret key is malformed.
        """
        return Keypair.parse(secret_key).public_key

    def current(self) -> Keypair:
        """Return the keypair that should sign the next post."""
        if not self._config.persist_identity:
            return self.generate()
        if self._session is None:
            self._session = self.generate()
            self._logger.info("identity_created", pubkey=self._session.public_key)
        return self._session

    def __repr__(self) -> str:
        pubkey = self._session.public_key if self._session else None
        return f"IdentityProvider(persist_identity={self.persist_identity}, pubkey={pubkey})"
