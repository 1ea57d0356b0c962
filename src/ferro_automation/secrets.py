"""AWS Secrets Manager lookups for playbook variables.

A var written as ``{ aws_secret = "name", key = "field" }`` is replaced by
the secret's value before any task runs. JSON secrets are indexed by
``key``; plain-text secrets are used whole.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
import base64
import json
import logging

import boto3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecretReference:
    name: str
    key: Optional[str] = None

    @classmethod
    def from_var(cls, value: dict[str, Any]) -> "SecretReference":
        key = value.get("key")
        return cls(str(value["aws_secret"]), None if key is None else str(key))


class SecretResolver:
    """Replaces secret references in a var table, fetching each secret once."""

    def __init__(self):
        self._secrets: dict[str, str] = {}

    @staticmethod
    def is_reference(value: Any) -> bool:
        return isinstance(value, dict) and "aws_secret" in value

    def resolve(self, values: dict[str, Any]) -> dict[str, Any]:
        resolved: dict[str, Any] = {}
        for name, value in values.items():
            if self.is_reference(value):
                value = self.lookup(SecretReference.from_var(value))
            resolved[name] = value
        return resolved

    def lookup(self, ref: SecretReference) -> str:
        text = self._fetch(ref.name)
        if ref.key is None:
            return text
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            payload = None
        if not isinstance(payload, dict):
            logger.debug("secret=%s is not a JSON object, ignoring key=%s", ref.name, ref.key)
            return text
        if ref.key not in payload:
            raise KeyError(f"secret {ref.name} has no key {ref.key!r}")
        return payload[ref.key]

    def _fetch(self, name: str) -> str:
        if name not in self._secrets:
            response = boto3.client("secretsmanager").get_secret_value(SecretId=name)
            text = response.get("SecretString")
            if text is None:
                binary = response.get("SecretBinary")
                if binary is None:
                    raise RuntimeError(f"secret {name} has no SecretString or SecretBinary")
                text = base64.b64decode(binary).decode()
            self._secrets[name] = text
        return self._secrets[name]
