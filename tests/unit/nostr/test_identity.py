"""
Unit tests for nostr.identity module.

Tests:
- Keypair construction, parsing, repr hygiene
- IdentityConfig validation
- IdentityProvider.generate(), derive_public_key(), current()
- Loading the session key from an environment variable
"""

import pytest
from nostr_sdk import Keys
from pydantic import ValidationError

from paleoquota.core.exceptions import ConfigurationError
from paleoquota.nostr.identity import IdentityConfig, IdentityProvider, Keypair


SECRET = "0123456789abcdef" * 4


class TestKeypair:
    """Keypair wrapper around nostr_sdk.Keys."""

    def test_public_key_derived(self) -> None:
        keys = Keys.parse(SECRET)
        keypair = Keypair(keys)
        assert keypair.public_key == keys.public_key().to_hex()
        assert len(keypair.public_key) == 64

    def test_secret_key_roundtrip(self) -> None:
        assert Keypair.parse(SECRET).secret_key == SECRET

    def test_parse_nsec(self) -> None:
        keys = Keys.parse(SECRET)
        nsec = keys.secret_key().to_bech32()
        assert Keypair.parse(nsec).public_key == keys.public_key().to_hex()

    def test_parse_invalid(self) -> None:
        with pytest.raises(ValueError, match="invalid secret key"):
            Keypair.parse("not-a-key")

    def test_repr_hides_secret(self) -> None:
        keypair = Keypair.parse(SECRET)
        assert SECRET not in repr(keypair)
        assert keypair.public_key in repr(keypair)

    def test_equality_by_public_key(self) -> None:
        assert Keypair.parse(SECRET) == Keypair.parse(SECRET)


class TestIdentityConfig:
    """IdentityConfig validation."""

    def test_defaults(self) -> None:
        config = IdentityConfig()
        assert config.persist_identity is False
        assert config.keys_env is None

    def test_keys_env_requires_persistence(self) -> None:
        with pytest.raises(ValidationError, match="persist_identity"):
            IdentityConfig(keys_env="PALEOQUOTA_NSEC")


class TestIdentityProvider:
    """IdentityProvider behavior."""

    def test_generate_unlinkable(self) -> None:
        assert IdentityProvider.generate().public_key != IdentityProvider.generate().public_key

    def test_derive_public_key(self) -> None:
        expected = Keys.parse(SECRET).public_key().to_hex()
        assert IdentityProvider.derive_public_key(SECRET) == expected
        assert IdentityProvider.derive_public_key(SECRET) == expected

    def test_fresh_keypair_per_post_by_default(self) -> None:
        provider = IdentityProvider()
        assert provider.persist_identity is False
        assert provider.current().public_key != provider.current().public_key

    def test_persisted_identity_reused(self) -> None:
        provider = IdentityProvider(IdentityConfig(persist_identity=True))
        first = provider.current()
        assert provider.current() is first
        assert first.public_key in repr(provider)

    def test_loads_key_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PALEOQUOTA_NSEC", SECRET)
        provider = IdentityProvider(
            IdentityConfig(persist_identity=True, keys_env="PALEOQUOTA_NSEC")
        )
        assert provider.current().public_key == IdentityProvider.derive_public_key(SECRET)

    def test_missing_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PALEOQUOTA_NSEC", raising=False)
        with pytest.raises(ConfigurationError, match="PALEOQUOTA_NSEC"):
            IdentityProvider(IdentityConfig(persist_identity=True, keys_env="PALEOQUOTA_NSEC"))

    def test_invalid_env_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PALEOQUOTA_NSEC", "garbage")
        with pytest.raises(ConfigurationError, match="valid secret key"):
            IdentityProvider(IdentityConfig(persist_identity=True, keys_env="PALEOQUOTA_NSEC"))
