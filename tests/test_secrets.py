import base64

import pytest

from ferro_automation import secrets as secret_module
from ferro_automation.secrets import SecretReference, SecretResolver


def fake_boto3(responses: dict, calls: list):
    class FakeClient:
        def get_secret_value(self, SecretId):
            calls.append(SecretId)
            return responses[SecretId]

    class FakeBoto3:
        def client(self, name):
            assert name == "secretsmanager"
            return FakeClient()

    return FakeBoto3()


def test_secret_resolver_plaintext_with_key(monkeypatch):
    calls: list = []
    monkeypatch.setattr(secret_module, "boto3", fake_boto3({"plain": {"SecretString": "mypassword"}}, calls))

    values = SecretResolver().resolve({"password": {"aws_secret": "plain", "key": "password"}})
    assert values["password"] == "mypassword"


def test_secret_resolver_json_key_and_cache(monkeypatch):
    calls: list = []
    monkeypatch.setattr(
        secret_module, "boto3", fake_boto3({"db": {"SecretString": '{"pw": "sekret"}'}}, calls)
    )
    resolver = SecretResolver()

    first = resolver.resolve({"a": {"aws_secret": "db", "key": "pw"}, "b": "plain"})
    second = resolver.resolve({"a": {"aws_secret": "db", "key": "pw"}})

    assert first == {"a": "sekret", "b": "plain"}
    assert second == {"a": "sekret"}
    assert calls == ["db"]


def test_secret_resolver_binary(monkeypatch):
    calls: list = []
    binary = base64.b64encode(b"from-binary")
    monkeypatch.setattr(secret_module, "boto3", fake_boto3({"bin": {"SecretBinary": binary}}, calls))

    assert SecretResolver().resolve({"v": {"aws_secret": "bin"}}) == {"v": "from-binary"}


def test_secret_resolver_missing_json_key(monkeypatch):
    calls: list = []
    monkeypatch.setattr(secret_module, "boto3", fake_boto3({"db": {"SecretString": '{"pw": "x"}'}}, calls))

    with pytest.raises(KeyError, match="no key 'user'"):
        SecretResolver().resolve({"u": {"aws_secret": "db", "key": "user"}})


def test_secret_reference_from_var():
    ref = SecretReference.from_var({"aws_secret": "db", "key": 3})
    assert ref == SecretReference("db", "3")
