"""PolicyBindingChecker — runs an IAM policy query and asserts a binding.

A check executes a CLI command (an argv list, never a shell string), expects
a JSON policy with a ``bindings`` array on stdout and nothing on stderr, and
then looks for a binding of the expected role that holds the expected
members.
"""
from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import structlog
import tenacity

from iam_fixture.core.errors import (
    BindingNotFound,
    CommandFailure,
    ParseFailure,
    TimeoutFailure,
)

logger = structlog.get_logger()

# Exit status reported when the executable itself cannot be started.
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    exit_status: int
    stdout: str
    stderr: str


@dataclass(frozen=True)
class Binding:
    role: str
    members: tuple[str, ...]


@dataclass(frozen=True)
class PolicyDocument:
    bindings: tuple[Binding, ...] = ()

    def roles(self) -> list[str]:
        return [b.role for b in self.bindings]

    def members_for(self, role: str) -> Optional[list[str]]:
        """Return every member bound to *role*, or None if the role is absent."""
        matching = [b for b in self.bindings if b.role == role]
        if not matching:
            return None
        return [m for b in matching for m in b.members]


@dataclass(frozen=True)
class ExpectedBinding:
    """Role and members a policy must contain.

    With ``ordered`` set the members must appear in the listed order
    (other members may sit between them).
    """

    role: str
    members: tuple[str, ...]
    ordered: bool = False


class CommandRunner:
    """Executes a policy query command and captures its outcome."""

    def __init__(self, timeout: float = 60.0) -> None:
        self._timeout = timeout

    def run(self, argv: Sequence[str]) -> CommandResult:
        """Run *argv* and return its CommandResult.

        Raises TimeoutFailure if the command outlives the timeout. A missing
        executable is reported as exit status 127 with the OS error on stderr.
        """
        try:
            completed = subprocess.run(
                list(argv),
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise TimeoutFailure(argv, self._timeout) from exc
        except OSError as exc:
            return CommandResult(exit_status=EXIT_NOT_FOUND, stdout="", stderr=str(exc))
        return CommandResult(
            exit_status=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )


Runner = Callable[[Sequence[str]], CommandResult]


class PolicyBindingChecker:
    """Fetches IAM policies through a command runner and asserts bindings.

    Parameters
    ----------
    runner:
        Callable taking an argv list and returning a CommandResult. Usually
        ``CommandRunner(timeout).run``; tests inject a fake.
    max_attempts:
        Total attempts per command. Only CommandFailure and TimeoutFailure
        are retried; a policy that cannot be parsed fails at once.
    retry_wait:
        Base of the exponential wait between attempts, in seconds.
    """

    def __init__(self, runner: Runner, max_attempts: int = 1, retry_wait: float = 2.0) -> None:
        self._runner = runner
        self._max_attempts = max(1, max_attempts)
        self._retry_wait = retry_wait

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check(self, argv: Sequence[str]) -> PolicyDocument:
        """Run *argv* and parse its output as a policy document.

        Raises CommandFailure, TimeoutFailure or ParseFailure.
        """
        retrying = tenacity.Retrying(
            retry=tenacity.retry_if_exception_type((CommandFailure, TimeoutFailure)),
            stop=tenacity.stop_after_attempt(self._max_attempts),
            wait=tenacity.wait_exponential(multiplier=self._retry_wait, max=30),
            before_sleep=self._log_retry,
            reraise=True,
        )
        result = retrying(self._execute, argv)
        return self.parse_policy(result.stdout)

    def assert_binding(
        self,
        doc: PolicyDocument,
        expected_role: str,
        expected_members: Sequence[str],
        ordered: bool = False,
        resource: Optional[str] = None,
    ) -> Binding:
        """Return the binding satisfying the expectation.

        Raises BindingNotFound naming the role and the member difference.
        """
        binding = self.find_binding(doc, expected_role, expected_members, ordered)
        if binding is not None:
            return binding

        actual = doc.members_for(expected_role)
        present = set(actual or ())
        raise BindingNotFound(
            role=expected_role,
            expected_members=expected_members,
            actual_members=actual,
            missing_members=[m for m in expected_members if m not in present],
            resource=resource,
            ordered=ordered,
            role_bindings=[b.members for b in doc.bindings if b.role == expected_role],
        )

    def verify(
        self,
        argv: Sequence[str],
        expected: ExpectedBinding,
        resource: Optional[str] = None,
    ) -> Binding:
        """Fetch the policy with *argv* and assert *expected* is bound."""
        doc = self.check(argv)
        try:
            binding = self.assert_binding(
                doc, expected.role, expected.members, expected.ordered, resource
            )
        except BindingNotFound as exc:
            logger.warning(
                "binding_check_failed",
                resource=resource,
                role=expected.role,
                missing=exc.missing_members,
            )
            raise
        logger.info("binding_check_passed", resource=resource, role=expected.role)
        return binding

    @staticmethod
    def find_binding(
        doc: PolicyDocument,
        role: str,
        members: Sequence[str],
        ordered: bool = False,
    ) -> Optional[Binding]:
        for binding in doc.bindings:
            if binding.role != role:
                continue
            if ordered and _is_subsequence(members, binding.members):
                return binding
            if not ordered and set(members) <= set(binding.members):
                return binding
        return None

    @staticmethod
    def parse_policy(stdout: str) -> PolicyDocument:
        """Parse ``{"bindings": [{"role": ..., "members": [...]}, ...]}``.

        An object without ``bindings`` is an empty policy.
        Raises ParseFailure for anything else.
        """
        try:
            raw = json.loads(stdout)
        except json.JSONDecodeError as exc:
            raise ParseFailure(f"Policy output is not valid JSON: {exc}") from exc

        if not isinstance(raw, dict):
            raise ParseFailure(f"Policy output must be a JSON object, got {type(raw).__name__}")

        raw_bindings = raw.get("bindings", [])
        if not isinstance(raw_bindings, list):
            raise ParseFailure(f"'bindings' must be a list, got {type(raw_bindings).__name__}")

        bindings = []
        for index, entry in enumerate(raw_bindings):
            if not isinstance(entry, dict):
                raise ParseFailure(f"bindings[{index}] is not an object: {entry!r}")
            role = entry.get("role")
            members = entry.get("members", [])
            if not isinstance(role, str):
                raise ParseFailure(f"bindings[{index}] has no string 'role': {entry!r}")
            if not isinstance(members, list) or not all(isinstance(m, str) for m in members):
                raise ParseFailure(f"bindings[{index}].members is not a list of strings: {entry!r}")
            bindings.append(Binding(role=role, members=tuple(members)))
        return PolicyDocument(bindings=tuple(bindings))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _execute(self, argv: Sequence[str]) -> CommandResult:
        logger.debug("policy_command_started", argv=list(argv))
        try:
            result = self._runner(argv)
        except TimeoutFailure as exc:
            logger.warning("policy_command_failed", argv=list(argv), timeout=exc.timeout)
            raise
        if result.exit_status != 0 or result.stderr:
            logger.warning(
                "policy_command_failed",
                argv=list(argv),
                exit_status=result.exit_status,
                stderr=result.stderr.strip(),
            )
            raise CommandFailure(argv, result)
        return result

    def _log_retry(self, retry_state: tenacity.RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "policy_command_will_retry",
            attempt=retry_state.attempt_number,
            max_attempts=self._max_attempts,
            delay_seconds=round(retry_state.next_action.sleep, 3) if retry_state.next_action else 0,
            error_type=type(exc).__name__,
        )


def _is_subsequence(expected: Sequence[str], actual: Sequence[str]) -> bool:
    remaining = iter(actual)
    return all(member in remaining for member in expected)
