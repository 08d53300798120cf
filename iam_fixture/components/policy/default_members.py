"""Members the platform grants implicitly when a resource is created.

A new bucket, for instance, binds ``roles/storage.legacyBucketReader`` to
the project's viewers. Expected bindings for such roles have to include
those members ahead of the ones the fixture granted.
"""
from __future__ import annotations

from typing import Mapping, Sequence

from iam_fixture.components.policy.policy_binding_checker import ExpectedBinding

# role -> member templates; ``{project_id}`` is substituted.
DEFAULT_MEMBER_GRANTS: Mapping[str, tuple[str, ...]] = {
    "roles/storage.legacyBucketReader": ("projectViewer:{project_id}",),
}


class DefaultMemberAugmenter:
    """Prepends implicitly granted members to an expected member list."""

    def __init__(self, grants: Mapping[str, Sequence[str]] = DEFAULT_MEMBER_GRANTS) -> None:
        self._grants: dict[str, tuple[str, ...]] = {
            role: tuple(templates) for role, templates in grants.items()
        }

    @property
    def grants(self) -> Mapping[str, tuple[str, ...]]:
        return dict(self._grants)

    def register(self, role: str, *templates: str) -> None:
        """Add (or replace) the implicit members for *role*."""
        if not templates:
            raise ValueError(f"No member templates given for role '{role}'")
        self._grants[role] = tuple(templates)

    def default_members(self, role: str, project_id: str) -> list[str]:
        return [t.format(project_id=project_id) for t in self._grants.get(role, ())]

    def augment(self, role: str, members: Sequence[str], project_id: str) -> list[str]:
        """Return *members* with the role's implicit members prepended.

        Roles with no implicit grant come back unchanged.
        """
        return self.default_members(role, project_id) + list(members)

    def expected_binding(self, role: str, members: Sequence[str], project_id: str) -> ExpectedBinding:
        """Build the expected binding, ordered only when members were injected."""
        injected = self.default_members(role, project_id)
        return ExpectedBinding(
            role=role,
            members=tuple(injected + list(members)),
            ordered=bool(injected),
        )


_default_augmenter = DefaultMemberAugmenter()


def augment(role: str, members: Sequence[str], project_id: str) -> list[str]:
    return _default_augmenter.augment(role, members, project_id)
