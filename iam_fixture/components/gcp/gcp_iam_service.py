"""GcpIamService — component for inspecting GCP IAM policies via gcloud CLI."""
from __future__ import annotations

from typing import Optional

from iam_fixture.components.policy.policy_binding_checker import (
    CommandRunner,
    PolicyBindingChecker,
    PolicyDocument,
)
from iam_fixture.components.policy.resource_path import parse_crypto_key, parse_key_ring
from iam_fixture.core.config.checker_config import CheckerConfig

POLICY_FORMAT = "--format=json(bindings)"


class GcpIamService:
    """Builds gcloud get-iam-policy invocations for each resource kind.

    Commands are argv lists so resource names are never interpreted by a
    shell. Resource names that carry their own location (key rings and
    crypto keys) are split and validated before use.
    """

    def __init__(
        self,
        config: CheckerConfig,
        checker: Optional[PolicyBindingChecker] = None,
    ) -> None:
        self._config = config
        self._checker = checker or PolicyBindingChecker(
            CommandRunner(config.timeout).run,
            max_attempts=config.max_attempts,
            retry_wait=config.retry_wait,
        )

    @property
    def checker(self) -> PolicyBindingChecker:
        return self._checker

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_policy(self, argv: list[str]) -> PolicyDocument:
        """Run a policy command and return the parsed policy."""
        return self._checker.check(argv)

    def folder_policy_command(self, folder: str) -> list[str]:
        return self._gcloud(
            "beta", "resource-manager", "folders", "get-iam-policy", folder,
        )

    def subnet_policy_command(self, subnet: str, project_id: str, region: str) -> list[str]:
        return self._gcloud(
            "beta", "compute", "networks", "subnets", "get-iam-policy", subnet,
            f"--project={project_id}",
            f"--region={region}",
        )

    def project_policy_command(self, project: str) -> list[str]:
        return self._gcloud("projects", "get-iam-policy", project)

    def service_account_policy_command(self, email: str) -> list[str]:
        return self._gcloud("iam", "service-accounts", "get-iam-policy", email)

    def bucket_policy_command(self, bucket: str, project: str) -> list[str]:
        # gcloud storage prints the same policy JSON as `gsutil iam get`
        # but, unlike gsutil, accepts --project and --format.
        return self._gcloud(
            "storage", "buckets", "get-iam-policy", f"gs://{bucket}",
            f"--project={project}",
        )

    def key_ring_policy_command(self, key_ring_name: str) -> list[str]:
        """Build the command for ``projects/<p>/locations/<l>/keyRings/<ring>``.

        Raises MalformedResourcePath if the name does not fit that schema.
        """
        ring = parse_key_ring(key_ring_name)
        return self._gcloud(
            "kms", "keyrings", "get-iam-policy", ring.key_ring,
            f"--project={ring.project}",
            f"--location={ring.location}",
        )

    def crypto_key_policy_command(self, key_name: str) -> list[str]:
        """Build the command for a ``.../keyRings/<ring>/cryptoKeys/<key>`` name.

        Raises MalformedResourcePath if the name does not fit that schema.
        """
        key = parse_crypto_key(key_name)
        return self._gcloud(
            "kms", "keys", "get-iam-policy", key.crypto_key,
            f"--project={key.project}",
            f"--location={key.location}",
            f"--keyring={key.key_ring}",
        )

    def topic_policy_command(self, topic: str, project_id: str) -> list[str]:
        return self._gcloud(
            "beta", "pubsub", "topics", "get-iam-policy", topic,
            f"--project={project_id}",
        )

    def subscription_policy_command(self, subscription: str, project_id: str) -> list[str]:
        return self._gcloud(
            "beta", "pubsub", "subscriptions", "get-iam-policy", subscription,
            f"--project={project_id}",
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _gcloud(self, *args: str) -> list[str]:
        return [self._config.gcloud, *args, POLICY_FORMAT]
