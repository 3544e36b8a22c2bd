"""Coordination groups: components whose versions always move together.

Each component gets a group ID when the repository is loaded; the members of
a group are looked up in a separate table. Components without an explicit
group live in a group of their own.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

__all__ = ["CoordinationGroups"]


@dataclass(frozen=True, slots=True)
class CoordinationGroups:
    """Group-ID assignment plus the group-ID to members table.

    Attributes:
        group_ids: Component name to group ID
        members: Members of each group, indexed by group ID
    """

    group_ids: dict[str, int]
    members: tuple[tuple[str, ...], ...]

    @classmethod
    def build(
        cls,
        component_names: Iterable[str],
        explicit_groups: Sequence[Sequence[str]] = (),
    ) -> CoordinationGroups:
        """Assign groups in component order.

        A group is numbered when its first member is reached; members keep the
        order in which the group lists them.
        """
        explicit: dict[str, tuple[str, ...]] = {}
        for group in explicit_groups:
            for member in group:
                explicit[member] = tuple(group)

        group_ids: dict[str, int] = {}
        members: list[tuple[str, ...]] = []
        for name in component_names:
            if name in group_ids:
                continue
            group = explicit.get(name, (name,))
            group_id = len(members)
            members.append(group)
            for member in group:
                group_ids[member] = group_id
        return cls(group_ids=group_ids, members=tuple(members))

    def group_id(self, name: str) -> int | None:
        return self.group_ids.get(name)

    def members_of(self, name: str) -> tuple[str, ...]:
        """Members of the group ``name`` belongs to (empty for unknown names)."""
        group_id = self.group_ids.get(name)
        if group_id is None:
            return ()
        return self.members[group_id]

    def all_groups(self) -> list[tuple[str, ...]]:
        return list(self.members)

    def __len__(self) -> int:
        return len(self.members)
