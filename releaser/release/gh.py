from __future__ import annotations

import json
from pathlib import Path
from time import sleep
from typing import Literal

from releaser.core.result import Err, Ok, Result
from releaser.platform.process import ProcessError
from releaser.platform.process import run as run_process
from releaser.release.errors import ReleaseError
from releaser.release.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
)

ACCEPT_V3 = "application/vnd.github.v3+json"
ACCEPT_CHECKS = "application/vnd.github.antiope-preview+json"

_ReleaseErrorKind = Literal[
    "gh_missing",
    "gh_auth_required",
    "invalid_input",
    "not_found",
    "api_failed",
]


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "tls handshake timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    if error.returncode == -1 and "timed out" in text:
        return True
    return any(marker in text for marker in markers)


def _is_not_found(error: ProcessError) -> bool:
    return "http 404" in f"{error.stderr}\n{error.stdout}".lower()


def run_gh_read(
    *,
    repo_root: Path,
    cmd: list[str],
    kind: _ReleaseErrorKind,
    message: str,
    hint: str | None = None,
    timeout: float = GH_TIMEOUT_SECONDS,
    retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
) -> Result[str, ReleaseError]:
    attempts = max(1, retry_attempts)
    for attempt in range(attempts):
        result = run_process(cmd, cwd=repo_root, timeout=timeout)
        if isinstance(result, Ok):
            return result

        error = result.error
        if attempt < attempts - 1 and _is_transient_gh_error(error):
            sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue

        return Err(
            ReleaseError(
                kind="not_found" if _is_not_found(error) else kind,
                message=message,
                hint=error.stderr.strip() or hint,
            )
        )

    return Err(ReleaseError(kind=kind, message=message, hint=hint))


def gh_api_json(
    *,
    repo_root: Path,
    endpoint: str,
    accept: str = ACCEPT_V3,
) -> Result[object, ReleaseError]:
    result = run_gh_read(
        repo_root=repo_root,
        cmd=["gh", "api", endpoint, "-H", f"Accept: {accept}"],
        kind="api_failed",
        message=f"gh api failed: {endpoint}",
        hint=endpoint,
    )
    if isinstance(result, Err):
        return result
    return _parse_json(result.value, endpoint)


def gh_api_write(
    *,
    repo_root: Path,
    endpoint: str,
    payload: dict[str, object],
    method: Literal["POST", "PATCH", "PUT"] = "POST",
) -> Result[object, ReleaseError]:
    """Send a JSON body to the API through stdin.

    Writes are not retried: they are not idempotent.
    """
    cmd = ["gh", "api", endpoint, "--input", "-", "-H", f"Accept: {ACCEPT_V3}"]
    if method != "POST":
        cmd.insert(2, f"-X{method}")
    result = run_process(cmd, cwd=repo_root, timeout=GH_TIMEOUT_SECONDS, input=json.dumps(payload))
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="api_failed",
                message=f"gh api {method} failed: {endpoint}",
                hint=result.error.stderr.strip() or endpoint,
            )
        )
    if not result.value.strip():
        return Ok(None)
    return _parse_json(result.value, endpoint)


def gh_api_exists(*, repo_root: Path, endpoint: str) -> Result[bool, ReleaseError]:
    """True if the resource exists, False on 404."""
    result = gh_api_json(repo_root=repo_root, endpoint=endpoint)
    match result:
        case Ok(_):
            return Ok(True)
        case Err(e) if e.kind == "not_found":
            return Ok(False)
        case Err(e):
            return Err(e)


def _parse_json(text: str, endpoint: str) -> Result[object, ReleaseError]:
    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"gh api returned invalid JSON: {e}",
                hint=endpoint,
            )
        )
    return Ok(obj)
