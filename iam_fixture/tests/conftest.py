"""
Shared pytest fixtures for the IAM binding tests under iam_fixture/tests/.

``fake_runner`` stands in for the gcloud CLI: tests queue CommandResults
per argv (or a default) and inspect the recorded calls afterwards.
"""
import json
import os
import sys

import pytest

# Ensure the repository root is importable regardless of where pytest is invoked.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from iam_fixture.components.policy.policy_binding_checker import CommandResult
from iam_fixture.core.config.checker_config import CheckerConfig
from iam_fixture.core.logging import setup_logging


def pytest_configure(config):
    checker_config = CheckerConfig()
    setup_logging(checker_config.log_level, checker_config.log_json)


def policy_json(*bindings) -> str:
    """Render ``(role, [members])`` tuples as gcloud policy output."""
    return json.dumps(
        {"bindings": [{"role": role, "members": list(members)} for role, members in bindings]}
    )


class FakeRunner:
    """Records argv lists and replays canned CommandResults."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self._by_argv: dict[tuple, list] = {}
        self._default: list = []

    def respond(self, result, argv=None) -> None:
        """Queue *result* (a CommandResult or an exception to raise).

        The last queued response for an argv is reused once the queue drains.
        """
        queue = self._default if argv is None else self._by_argv.setdefault(tuple(argv), [])
        queue.append(result)

    def __call__(self, argv) -> CommandResult:
        self.calls.append(list(argv))
        queue = self._by_argv.get(tuple(argv)) or self._default
        if not queue:
            raise AssertionError(f"No fake response queued for {argv}")
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def ok():
    """Build a successful CommandResult from ``(role, [members])`` tuples."""
    def _ok(*bindings) -> CommandResult:
        return CommandResult(exit_status=0, stdout=policy_json(*bindings), stderr="")
    return _ok


@pytest.fixture
def fixture_attributes() -> dict:
    return {
        "project_id": "ci-iam-fixture",
        "region": "us-central1",
        "folders": ["folders/1001", "folders/1002"],
        "subnets": ["subnet-a", "subnet-b"],
        "projects": ["ci-iam-p0", "ci-iam-p1"],
        "service_accounts": [
            "sa-0@ci-iam-fixture.iam.gserviceaccount.com",
            "sa-1@ci-iam-fixture.iam.gserviceaccount.com",
        ],
        "buckets": ["ci-iam-bucket-0", "ci-iam-bucket-1"],
        "key_rings": [
            "projects/ci-iam-fixture/locations/us/keyRings/ring-0",
            "projects/ci-iam-fixture/locations/us/keyRings/ring-1",
        ],
        "keys": [
            "projects/ci-iam-fixture/locations/us/keyRings/ring-0/cryptoKeys/key-0",
            "projects/ci-iam-fixture/locations/us/keyRings/ring-1/cryptoKeys/key-1",
        ],
        "topics": ["topic-0", "topic-1"],
        "subscriptions": ["sub-0", "sub-1"],
        "basic_roles": ["roles/viewer", "roles/browser"],
        "folder_roles": ["roles/resourcemanager.folderViewer", "roles/browser"],
        "project_roles": ["roles/iam.securityReviewer", "roles/viewer"],
        "bucket_roles": ["roles/storage.legacyBucketReader", "roles/storage.objectViewer"],
        "member_group_0": ["user:alice@example.com", "group:ops@example.com"],
        "member_group_1": ["serviceAccount:ci@ci-iam-fixture.iam.gserviceaccount.com"],
    }
