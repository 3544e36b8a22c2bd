from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True, slots=True)
class ReleaseError:
    kind: Literal[
        "gh_missing",
        "gh_auth_required",
        "invalid_input",
        "not_found",
        "api_failed",
    ]
    message: str
    hint: str | None = None
