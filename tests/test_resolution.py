"""Tests for _resolution.py: decrypting a raw document into a ConfigSnapshot."""

from types import MappingProxyType

import pytest

from instant_config._crypto import HybridCrypto, obfuscate
from instant_config._resolution import ConfigSnapshot, decrypted_config, is_encrypted
from instant_config._testing import encrypted_entry
from instant_config._types import UNDEFINED, DecryptionError, KeyInitError, SecretValue, secret_value


def _resolve(keyset, raw, is_production=False):
    crypto = HybridCrypto(keyset=keyset)
    crypto.init_hybrid()
    return decrypted_config(
        obfuscate, crypto.get_decrypt_primitive, crypto.decrypt, is_production, raw
    )


class TestDecryptedConfig:
    def test_decrypts_tagged_secrets(self, keyset):
        snap = _resolve(keyset, {"stripe_secret": encrypted_entry(keyset, "sk_test_1")})
        assert isinstance(snap["stripe_secret"], SecretValue)
        assert secret_value(snap["stripe_secret"]) == "sk_test_1"

    def test_plain_values_pass_through(self, keyset):
        snap = _resolve(keyset, {"instant_config_app_id": "abc", "pool": 5})
        assert snap["instant_config_app_id"] == "abc"
        assert snap["pool"] == 5

    def test_nested_secrets(self, keyset):
        raw = {"google_oauth_client": {"client_id": "id", "client_secret": encrypted_entry(keyset, "cs")}}
        snap = _resolve(keyset, raw)
        assert snap.lookup("google_oauth_client.client_id") == "id"
        assert secret_value(snap.lookup("google_oauth_client.client_secret")) == "cs"
        assert snap.secret_keys() == ["google_oauth_client.client_secret"]

    def test_secrets_in_lists(self, keyset):
        snap = _resolve(keyset, {"tokens": [encrypted_entry(keyset, "a"), "plain"]})
        assert isinstance(snap["tokens"], tuple)
        assert secret_value(snap["tokens"][0]) == "a"
        assert snap["tokens"][1] == "plain"

    def test_repr_never_shows_plaintext(self, keyset):
        snap = _resolve(keyset, {"postmark_token": encrypted_entry(keyset, "pm-secret")})
        assert "pm-secret" not in repr(snap)
        assert "pm-secret" not in str(dict(snap))

    def test_corrupt_ciphertext_fatal_everywhere(self, keyset):
        raw = {"stripe_secret": {"$encrypted": "AQEAgarbage"}}
        with pytest.raises(DecryptionError) as exc:
            _resolve(keyset, raw, is_production=False)
        assert exc.value.key == "stripe_secret"
        with pytest.raises(DecryptionError):
            _resolve(keyset, raw, is_production=True)

    def test_wrong_key_fatal(self, keyset, other_keyset):
        with pytest.raises(DecryptionError, match="nested.token"):
            _resolve(keyset, {"nested": {"token": encrypted_entry(other_keyset, "x")}})

    def test_optional_placeholder_tolerated_outside_production(self, keyset):
        snap = _resolve(keyset, {"discord": {"$encrypted": None, "$optional": True}})
        assert secret_value(snap["discord"]) == ""
        assert not snap["discord"]

    def test_optional_placeholder_fatal_in_production(self, keyset):
        with pytest.raises(DecryptionError, match="no ciphertext"):
            _resolve(keyset, {"discord": {"$encrypted": "", "$optional": True}}, is_production=True)

    def test_required_placeholder_fatal(self, keyset):
        with pytest.raises(DecryptionError):
            _resolve(keyset, {"discord": {"$encrypted": ""}})

    def test_non_string_ciphertext(self, keyset):
        with pytest.raises(DecryptionError, match="must be a string"):
            _resolve(keyset, {"discord": {"$encrypted": 42}})

    def test_blank_secret_in_production_is_kept(self, keyset, caplog):
        with caplog.at_level("WARNING", logger="instant_config._resolution"):
            snap = _resolve(keyset, {"discord": encrypted_entry(keyset, "")}, is_production=True)
        assert secret_value(snap["discord"]) == ""
        assert "blank" in caplog.text

    def test_primitive_only_requested_when_needed(self):
        def no_primitive():
            raise KeyInitError("not initialized")

        snap = decrypted_config(obfuscate, no_primitive, lambda p, b: "", False, {"a": 1})
        assert snap["a"] == 1

    def test_decrypt_called_once_per_secret(self, keyset):
        crypto = HybridCrypto(keyset=keyset)
        crypto.init_hybrid()
        calls = []

        def counting_decrypt(primitive, blob):
            calls.append(blob)
            return crypto.decrypt(primitive, blob)

        raw = {"a": encrypted_entry(keyset, "1"), "b": encrypted_entry(keyset, "2"), "c": "plain"}
        decrypted_config(obfuscate, crypto.get_decrypt_primitive, counting_decrypt, False, raw)
        assert len(calls) == 2

    def test_rejects_non_mapping(self, keyset):
        with pytest.raises(TypeError):
            _resolve(keyset, ["not", "a", "mapping"])


class TestConfigSnapshot:
    def test_is_immutable(self):
        snap = ConfigSnapshot({"a": 1})
        with pytest.raises(TypeError):
            snap["a"] = 2
        with pytest.raises(AttributeError):
            snap.extra = 1

    def test_nested_mappings_are_read_only(self, keyset):
        snap = _resolve(keyset, {"outer": {"inner": 1}})
        assert isinstance(snap["outer"], MappingProxyType)
        with pytest.raises(TypeError):
            snap["outer"]["inner"] = 2

    def test_source_changes_do_not_leak(self, keyset):
        raw = {"outer": {"inner": 1}}
        snap = _resolve(keyset, raw)
        raw["outer"]["inner"] = 2
        assert snap.lookup("outer.inner") == 1

    def test_lookup_missing(self):
        snap = ConfigSnapshot({"a": {"b": 1}})
        assert snap.lookup("a.c") is UNDEFINED
        assert snap.lookup("a.b.c") is UNDEFINED
        assert snap.lookup("missing") is UNDEFINED

    def test_secret_accessor(self):
        snap = ConfigSnapshot({"s": SecretValue("x"), "plain": "y"})
        assert snap.secret("s") == SecretValue("x")
        assert snap.secret("missing") is None
        with pytest.raises(TypeError, match="not an encrypted secret"):
            snap.secret("plain")

    def test_mapping_protocol(self):
        snap = ConfigSnapshot({"a": 1, "b": 2})
        assert len(snap) == 2
        assert set(snap) == {"a", "b"}
        assert snap.get("c") is None


def test_is_encrypted():
    assert is_encrypted({"$encrypted": "x"})
    assert not is_encrypted({"encrypted": "x"})
    assert not is_encrypted("x")
