from __future__ import annotations

from dataclasses import dataclass

from releaser.core.structured import StrDict, as_obj_list, as_str_dict, get_int, get_str, get_table


@dataclass(frozen=True, slots=True)
class PullRequest:
    """Read-only view over a GitHub pull request resource."""

    repo_path: str
    resource: StrDict

    @property
    def number(self) -> int:
        return get_int(self.resource, "number") or 0

    @property
    def state(self) -> str | None:
        return get_str(self.resource, "state")

    @property
    def labels(self) -> list[str]:
        names: list[str] = []
        for item in as_obj_list(self.resource.get("labels")) or []:
            label = as_str_dict(item)
            if label is None:
                continue
            name = get_str(label, "name")
            if name is not None:
                names.append(name)
        return names

    @property
    def head_ref(self) -> str | None:
        head = get_table(self.resource, "head")
        return get_str(head, "ref") if head is not None else None

    @property
    def base_ref(self) -> str | None:
        base = get_table(self.resource, "base")
        return get_str(base, "ref") if base is not None else None

    @property
    def merge_commit_sha(self) -> str | None:
        return get_str(self.resource, "merge_commit_sha")

    @property
    def merged(self) -> bool:
        return get_str(self.resource, "merged_at") is not None

    @property
    def title(self) -> str | None:
        return get_str(self.resource, "title")

    @property
    def url(self) -> str:
        return f"https://github.com/{self.repo_path}/pull/{self.number}"
