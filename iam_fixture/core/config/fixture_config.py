"""Fixture attributes: the resources under test and their expected bindings.

Attributes come from a flat YAML file, usually rendered from Terraform
outputs of the fixture project::

    project_id: ci-iam-fixture
    region: us-central1
    folders: [folders/111, folders/222]
    buckets: [bucket-a, bucket-b]
    basic_roles: [roles/viewer, roles/browser]
    member_group_0: [user:a@example.com]
    member_group_1: [group:b@example.com]

Resource and role attributes are pairs; check ``i`` of each resource kind
uses element ``i`` of the pair and ``member_group_<i>``.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import yaml

from iam_fixture.core.errors import ConfigError

ATTRIBUTES_ENV_VAR = "IAM_FIXTURE_ATTRIBUTES"

PAIR_ATTRIBUTES = (
    "folders",
    "subnets",
    "projects",
    "service_accounts",
    "buckets",
    "key_rings",
    "keys",
    "topics",
    "subscriptions",
    "basic_roles",
    "folder_roles",
    "project_roles",
    "bucket_roles",
)

MEMBER_GROUP_ATTRIBUTES = ("member_group_0", "member_group_1")


Pair = tuple[str, str]


@dataclass(frozen=True)
class FixtureConfig:
    project_id: str
    region: str
    folders: Pair
    subnets: Pair
    projects: Pair
    service_accounts: Pair
    buckets: Pair
    key_rings: Pair
    keys: Pair
    topics: Pair
    subscriptions: Pair
    basic_roles: Pair
    folder_roles: Pair
    project_roles: Pair
    bucket_roles: Pair
    member_groups: tuple[tuple[str, ...], tuple[str, ...]]

    @classmethod
    def from_mapping(cls, attributes: Mapping[str, Any]) -> "FixtureConfig":
        """Validate *attributes* and build the config.

        Raises ConfigError naming the first missing or malformed attribute.
        """
        if not isinstance(attributes, Mapping):
            raise ConfigError(
                f"Fixture attributes must be a mapping, got {type(attributes).__name__}"
            )

        values: dict[str, Any] = {
            "project_id": _require_string(attributes, "project_id"),
            "region": _require_string(attributes, "region"),
        }
        for name in PAIR_ATTRIBUTES:
            values[name] = _require_pair(attributes, name)
        values["member_groups"] = tuple(
            _require_members(attributes, name) for name in MEMBER_GROUP_ATTRIBUTES
        )
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str) -> "FixtureConfig":
        """Read an attributes YAML file and build the config."""
        if not os.path.isfile(path):
            raise ConfigError(f"Fixture attributes file not found: {path}")
        with open(path, "r") as f:
            try:
                doc = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigError(f"Could not parse fixture attributes {path}: {exc}") from exc
        return cls.from_mapping(doc or {})


def load_fixture_config() -> Optional[FixtureConfig]:
    """Return the config named by IAM_FIXTURE_ATTRIBUTES, or None if unset."""
    path = os.environ.get(ATTRIBUTES_ENV_VAR, "").strip()
    if not path:
        return None
    return FixtureConfig.from_yaml(path)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _require_string(attributes: Mapping[str, Any], name: str) -> str:
    value = attributes.get(name)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"Attribute '{name}' must be a non-empty string, got {value!r}")
    return value


def _require_pair(attributes: Mapping[str, Any], name: str) -> Pair:
    value = attributes.get(name)
    if (
        not isinstance(value, (list, tuple))
        or len(value) != 2
        or not all(isinstance(v, str) and v for v in value)
    ):
        raise ConfigError(
            f"Attribute '{name}' must be a list of two non-empty strings, got {value!r}"
        )
    return value[0], value[1]


def _require_members(attributes: Mapping[str, Any], name: str) -> tuple[str, ...]:
    value = attributes.get(name)
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"Attribute '{name}' must be a list of member strings, got {value!r}")
    malformed = [v for v in value if ":" not in v]
    if malformed:
        raise ConfigError(
            f"Attribute '{name}' has members without a '<type>:' prefix: {malformed}"
        )
    return tuple(value)
