"""Failure types raised by policy binding checks.

Every per-check failure derives from ``CheckFailure`` so a suite runner can
catch it, attach the check name and carry on with sibling checks.
"""
from __future__ import annotations

from typing import Optional, Sequence


class CheckFailure(Exception):
    """Base class for a single check's failure."""

    def __init__(self, message: str, check_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.check_name = check_name

    def __str__(self) -> str:
        if self.check_name:
            return f"[{self.check_name}] {self.message}"
        return self.message


class CommandFailure(CheckFailure):
    """The policy query command exited non-zero or wrote to stderr."""

    def __init__(self, argv: Sequence[str], result, check_name: Optional[str] = None) -> None:
        self.argv = list(argv)
        self.result = result
        message = (
            f"Command {' '.join(self.argv)!r} failed with exit status "
            f"{result.exit_status}.\n"
            f"stderr: {result.stderr.strip()}"
        )
        super().__init__(message, check_name)


class TimeoutFailure(CheckFailure):
    """The policy query command did not finish within the timeout."""

    def __init__(self, argv: Sequence[str], timeout: float, check_name: Optional[str] = None) -> None:
        self.argv = list(argv)
        self.timeout = timeout
        message = f"Command {' '.join(self.argv)!r} timed out after {timeout}s"
        super().__init__(message, check_name)


class ParseFailure(CheckFailure):
    """The command output is not a policy document."""


class BindingNotFound(CheckFailure, AssertionError):
    """No binding for the role contains the expected members."""

    def __init__(
        self,
        role: str,
        expected_members: Sequence[str],
        actual_members: Optional[Sequence[str]],
        missing_members: Sequence[str],
        resource: Optional[str] = None,
        ordered: bool = False,
        role_bindings: Sequence[Sequence[str]] = (),
    ) -> None:
        self.role = role
        self.expected_members = list(expected_members)
        self.actual_members = None if actual_members is None else list(actual_members)
        self.missing_members = list(missing_members)
        self.resource = resource
        self.ordered = ordered
        # Members of each binding for the role, in policy order.
        self.role_bindings = [list(members) for members in role_bindings]

        target = f" on {resource}" if resource else ""
        if self.actual_members is None:
            detail = f"role '{role}' is not bound{target}."
        elif self.missing_members:
            detail = f"role '{role}'{target} is missing members {self.missing_members}."
        elif len(self.role_bindings) > 1:
            detail = (
                f"role '{role}'{target} holds the expected members split across "
                f"{len(self.role_bindings)} bindings; none of them holds all of them."
            )
        elif ordered:
            detail = f"role '{role}'{target} has the expected members out of order."
        else:
            detail = f"role '{role}'{target} does not hold the expected members."
        lines = [
            f"Expected binding not found: {detail}",
            f"  expected members{' (ordered)' if ordered else ''}: {self.expected_members}",
            f"  actual members:   {self.actual_members}",
        ]
        if len(self.role_bindings) > 1:
            lines += [
                f"  binding {index}: {members}"
                for index, members in enumerate(self.role_bindings)
            ]
        super().__init__("\n".join(lines))


class MalformedResourcePath(CheckFailure, ValueError):
    """A compound resource name does not match its label/value schema."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed resource path {path!r}: {reason}")


class ConfigError(Exception):
    """The fixture attributes are missing or invalid."""
