"""Tests for _types.py: SecretValue, Environment, UNDEFINED, and exception classes."""

import pickle

import pytest
from pydantic import BaseModel, ConfigDict, ValidationError

from instant_config._types import (
    UNDEFINED,
    ConfigError,
    DecryptionError,
    Environment,
    InstanceIdentityError,
    InvalidConnectionStringError,
    KeyInitError,
    SecretValue,
    _Undefined,
    secret_value,
    wrap,
)


class TestUndefined:
    def test_singleton(self):
        assert _Undefined() is _Undefined()
        assert _Undefined() is UNDEFINED

    def test_falsy(self):
        assert bool(UNDEFINED) is False

    def test_repr(self):
        assert repr(UNDEFINED) == "UNDEFINED"


class TestErrors:
    @pytest.mark.parametrize(
        "exc",
        [KeyInitError, DecryptionError, InvalidConnectionStringError, InstanceIdentityError],
    )
    def test_inherit_config_error(self, exc):
        assert issubclass(exc, ConfigError)

    def test_decryption_error_names_key(self):
        err = DecryptionError("bad tag", key="stripe_secret")
        assert err.key == "stripe_secret"
        assert "stripe_secret" in str(err)


class TestEnvironment:
    def test_values(self):
        assert {e.value for e in Environment} == {"production", "test", "development"}

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("production", Environment.PRODUCTION),
            ("prod", Environment.PRODUCTION),
            ("PROD", Environment.PRODUCTION),
            ("dev", Environment.DEVELOPMENT),
            ("test", Environment.TEST),
            (Environment.TEST, Environment.TEST),
        ],
    )
    def test_coerce(self, raw, expected):
        assert Environment.coerce(raw) is expected

    def test_coerce_invalid(self):
        with pytest.raises(ValueError, match="not a valid environment"):
            Environment.coerce("staging")

    def test_is_production(self):
        assert Environment.PRODUCTION.is_production
        assert not Environment.TEST.is_production

    def test_str(self):
        assert str(Environment.DEVELOPMENT) == "development"


class TestSecretValue:
    def test_round_trip(self):
        assert secret_value(wrap("hunter2")) == "hunter2"

    def test_repr_redacts(self):
        s = wrap("hunter2")
        assert "hunter2" not in repr(s)
        assert "***" in repr(s)

    def test_str_and_format_redact(self):
        s = wrap("hunter2")
        assert str(s) == "***"
        assert f"{s}" == "***"
        assert "hunter2" not in "%s" % (s,)

    def test_container_repr_redacts(self):
        assert "hunter2" not in repr({"key": wrap("hunter2")})

    def test_immutable(self):
        s = wrap("hunter2")
        with pytest.raises(AttributeError):
            s._value = "other"

    def test_not_picklable(self):
        with pytest.raises(TypeError):
            pickle.dumps(wrap("hunter2"))

    def test_absent_secret_is_blank(self):
        assert secret_value(None) == ""
        assert secret_value(wrap(None)) == ""
        assert secret_value(wrap("")) == ""

    def test_bool_is_non_blank(self):
        assert bool(wrap("x")) is True
        assert bool(wrap("")) is False
        assert bool(wrap("   ")) is False

    def test_equality(self):
        assert wrap("a") == wrap("a")
        assert wrap("a") != wrap("b")

    def test_equality_non_ascii(self):
        assert wrap("p\u00e4ss") == wrap("p\u00e4ss")
        assert wrap("p\u00e4ss") != wrap("pass")

    def test_not_equal_to_raw(self):
        assert wrap("a") != "a"

    def test_hashable(self):
        assert {wrap("a"), wrap("a")} == {wrap("a")}


class _SecretModel(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)
    api_key: SecretValue


class TestSecretValuePydantic:
    def test_as_pydantic_field(self):
        m = _SecretModel(api_key="raw-value")
        assert isinstance(m.api_key, SecretValue)
        assert m.api_key.secret_value == "raw-value"

    def test_passthrough_if_already_secret(self):
        s = wrap("wrapped")
        assert _SecretModel(api_key=s).api_key is s

    def test_model_dump_redacts(self):
        assert _SecretModel(api_key="my-secret").model_dump()["api_key"] == "***"

    def test_model_dump_json_redacts(self):
        assert "my-secret" not in _SecretModel(api_key="my-secret").model_dump_json()

    def test_rejects_non_string(self):
        with pytest.raises(ValidationError):
            _SecretModel(api_key=123)
