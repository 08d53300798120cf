"""Named binding controls for the fixture's resources.

Each control pairs one policy command with the binding that resource must
hold. Controls are independent: running them collects one result per
control and a failure in one never stops the others.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import structlog

from iam_fixture.components.gcp.gcp_iam_service import GcpIamService
from iam_fixture.components.policy.default_members import DefaultMemberAugmenter
from iam_fixture.components.policy.policy_binding_checker import (
    ExpectedBinding,
    PolicyBindingChecker,
)
from iam_fixture.core.config.checker_config import CheckerConfig
from iam_fixture.core.config.fixture_config import FixtureConfig
from iam_fixture.core.errors import CheckFailure, MalformedResourcePath

logger = structlog.get_logger()


@dataclass(frozen=True)
class BindingControl:
    """One named check. ``error`` is set when the command could not be built."""

    name: str
    expected: ExpectedBinding
    command: Optional[tuple[str, ...]] = None
    error: Optional[CheckFailure] = None

    @property
    def control_id(self) -> str:
        return f"{self.name}-bindings"


@dataclass(frozen=True)
class ControlResult:
    control_id: str
    passed: bool
    message: str = ""
    failure: Optional[CheckFailure] = None


def build_controls(
    fixture: FixtureConfig,
    service: GcpIamService,
    augmenter: Optional[DefaultMemberAugmenter] = None,
) -> list[BindingControl]:
    """Return the fixture's controls in a stable order."""
    augmenter = augmenter or DefaultMemberAugmenter()
    groups = fixture.member_groups
    controls: list[BindingControl] = []

    def add(name: str, build: Callable[[], list[str]], expected: ExpectedBinding) -> None:
        try:
            controls.append(BindingControl(name, expected, command=tuple(build())))
        except MalformedResourcePath as exc:
            exc.check_name = f"{name}-bindings"
            controls.append(BindingControl(name, expected, error=exc))

    def plain(role: str, members: Sequence[str]) -> ExpectedBinding:
        return ExpectedBinding(role=role, members=tuple(members))

    for i in range(2):
        add(
            f"folder-{i}",
            lambda i=i: service.folder_policy_command(fixture.folders[i]),
            plain(fixture.folder_roles[i], groups[i]),
        )
    for i in range(2):
        add(
            f"subnet-{i}",
            lambda i=i: service.subnet_policy_command(
                fixture.subnets[i], fixture.project_id, fixture.region
            ),
            plain(fixture.basic_roles[i], groups[i]),
        )

    # Buckets live in the first fixture project; each bucket is checked
    # against both bucket roles.
    bucket_project = fixture.projects[0]
    for b in range(2):
        for r in range(2):
            add(
                f"bucket-{b}-role-{r}",
                lambda b=b: service.bucket_policy_command(fixture.buckets[b], bucket_project),
                augmenter.expected_binding(fixture.bucket_roles[r], groups[r], bucket_project),
            )

    for i in range(2):
        add(
            f"project-{i}",
            lambda i=i: service.project_policy_command(fixture.projects[i]),
            plain(fixture.project_roles[i], groups[i]),
        )

    per_kind = (
        ("service-account", lambda i: service.service_account_policy_command(fixture.service_accounts[i])),
        ("keyring", lambda i: service.key_ring_policy_command(fixture.key_rings[i])),
        ("key", lambda i: service.crypto_key_policy_command(fixture.keys[i])),
        ("topic", lambda i: service.topic_policy_command(fixture.topics[i], fixture.project_id)),
        (
            "subscription",
            lambda i: service.subscription_policy_command(fixture.subscriptions[i], fixture.project_id),
        ),
    )
    for kind, command_for in per_kind:
        for i in range(2):
            add(
                f"{kind}-{i}",
                lambda command_for=command_for, i=i: command_for(i),
                plain(fixture.basic_roles[i], groups[i]),
            )
    return controls


def run_control(checker: PolicyBindingChecker, control: BindingControl) -> ControlResult:
    """Run *control* and capture any CheckFailure into its result."""
    try:
        if control.error is not None:
            raise control.error
        checker.verify(list(control.command), control.expected, resource=control.name)
    except CheckFailure as exc:
        exc.check_name = control.control_id
        return ControlResult(control.control_id, passed=False, message=str(exc), failure=exc)
    return ControlResult(control.control_id, passed=True)


def run_controls(
    checker: PolicyBindingChecker,
    controls: Sequence[BindingControl],
    max_workers: int = 1,
) -> list[ControlResult]:
    """Run every control, in parallel when *max_workers* > 1.

    Results are returned in the order of *controls*.
    """
    if max_workers <= 1:
        results = [run_control(checker, c) for c in controls]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(lambda c: run_control(checker, c), controls))

    failed = [r.control_id for r in results if not r.passed]
    logger.info("controls_finished", total=len(results), failed=len(failed), failed_ids=failed)
    return results


def run_suite(
    fixture: FixtureConfig,
    config: CheckerConfig,
    service: Optional[GcpIamService] = None,
) -> dict[str, ControlResult]:
    """Build and run every fixture control with the configured parallelism.

    Returns results keyed by control id, in control order.
    """
    service = service or GcpIamService(config)
    controls = build_controls(fixture, service)
    results = run_controls(service.checker, controls, max_workers=config.max_workers)
    return {r.control_id: r for r in results}
