from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from releaser.core.result import Err, Ok, Result
from releaser.output.console import MockConsole
from releaser.output.reporter import ReleaseFailure
from releaser.platform.process import ProcessError
from releaser.release import steps as steps_mod
from releaser.release.errors import ReleaseError
from releaser.release.performer import Performer, UnitResult
from releaser.release.pull_request import PullRequest
from releaser.release.repository import Repository
from releaser.release.semver import Version

if TYPE_CHECKING:
    from conftest import ReleaseWorkspace


@pytest.fixture(autouse=True)
def quiet_gh(monkeypatch: pytest.MonkeyPatch) -> list[list[str]]:
    """Release steps never reach GitHub or run real commands here."""
    calls: list[list[str]] = []

    def fake_exists(*, repo_root: Path, endpoint: str) -> Result[bool, ReleaseError]:
        del repo_root, endpoint
        return Ok(False)

    def fake_run(cmd: list[str], cwd: Path) -> Result[None, ProcessError]:
        del cwd
        calls.append(cmd)
        if cmd[0] == "false":
            return Err(ProcessError(tuple(cmd), 1, "", ""))
        return Ok(None)

    monkeypatch.setattr(steps_mod, "gh_api_exists", fake_exists)
    monkeypatch.setattr(steps_mod, "run_silent", fake_run)
    return calls


class _Recorder:
    def __init__(self) -> None:
        self.updates: list[tuple[int, list[str] | None, str | None]] = []
        self.issues: list[tuple[str, str]] = []

    def install(self, repository: Repository, monkeypatch: pytest.MonkeyPatch) -> None:
        def update_release_pr(
            pr: PullRequest, *, labels: list[str] | None = None, message: str | None = None
        ) -> None:
            self.updates.append((pr.number, labels, message))

        def open_issue(title: str, body: str) -> dict[str, object]:
            self.issues.append((title, body))
            return {"number": 12}

        monkeypatch.setattr(repository, "update_release_pr", update_release_pr)
        monkeypatch.setattr(repository, "open_issue", open_issue)


def _performer(
    workspace: ReleaseWorkspace,
    repository: Repository,
    monkeypatch: pytest.MonkeyPatch,
    *,
    prs: tuple[PullRequest, ...] = (),
    **kwargs: object,
) -> Performer:
    monkeypatch.setattr(repository, "git_fetch", lambda *args, **kw: None)
    monkeypatch.setattr(repository, "find_release_prs", lambda **kw: list(prs))
    options: dict[str, object] = {
        "enable_prechecks": False,
        "capture_errors": True,
        "dry_run": True,
        "work_dir": workspace.root.parent / "work",
    }
    options.update(kwargs)
    return Performer(repository, **options)  # pyright: ignore[reportArgumentType]


def _solo(workspace: ReleaseWorkspace, **component: object) -> Repository:
    workspace.add_component("solo")
    workspace.commit("initial")
    return workspace.repository({"components": [{"name": "solo", **component}]})


def _release_pr(workspace: ReleaseWorkspace, number: int = 7) -> PullRequest:
    return PullRequest(
        "example-org/widgets",
        {
            "number": number,
            "merge_commit_sha": workspace.head(),
            "merged_at": "2024-01-02T00:00:00Z",
            "head": {"ref": "release/solo/1.0.0"},
            "base": {"ref": "main"},
        },
    )


# =============================================================================
# UnitResult
# =============================================================================


def test_unit_result_formatting() -> None:
    result = UnitResult.create("solo", Version.of(1, 0, 0), capture_errors=True)
    assert result.empty

    result.successes.append("Done.")
    result.errors = ["Broken."]

    assert result.formatted_successes == ["* Done."]
    assert result.formatted_errors == ["* ERROR: Broken."]
    assert UnitResult.create(None, None, capture_errors=False).errors is None


# =============================================================================
# Ad hoc releases
# =============================================================================


def test_adhoc_release_dry_run(
    workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch, console: MockConsole
) -> None:
    repository = _solo(workspace)
    performer = _performer(workspace, repository, monkeypatch)

    performer.perform_adhoc_release("solo")

    assert performer.release_sha == workspace.head()
    assert performer.pr is None
    assert not performer.has_errors
    [result] = performer.results
    assert result.version == Version.of(1, 0, 0)
    assert result.successes == ["DRY RUN GitHub tag solo/v1.0.0."]
    assert "warning: No release pull request found" in console.messages
    assert "info: Running step github_release for solo ..." in console.messages


def test_dry_run_is_repeatable(workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch) -> None:
    repository = _solo(workspace)

    first = _performer(workspace, repository, monkeypatch).perform_adhoc_release("solo")
    second = _performer(workspace, repository, monkeypatch).perform_adhoc_release("solo")

    assert first.results == second.results


def test_skipped_step_continues_pipeline(
    workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch, console: MockConsole
) -> None:
    workspace.add_component("demo", package=True)
    workspace.commit("initial")
    workspace.http.set_json("https://pypi.org/pypi/demo/1.0.0/json", {"info": {}})
    repository = workspace.repository(
        {
            "components": [
                {
                    "name": "demo",
                    "type": "package",
                    "steps": [{"type": "release_package"}, {"type": "github_release"}],
                }
            ]
        }
    )

    performer = _performer(workspace, repository, monkeypatch).perform_adhoc_release("demo")

    [result] = performer.results
    assert result.errors == []
    assert result.successes == ["Package already pushed for demo 1.0.0", "DRY RUN GitHub tag demo/v1.0.0."]
    assert "Package already pushed for demo 1.0.0. Skipping." in console.messages
    assert not any(m.startswith("warning: Package already pushed") for m in console.messages)


def test_abort_stops_component_pipeline(
    workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch, quiet_gh: list[list[str]]
) -> None:
    repository = _solo(
        workspace,
        steps=[{"type": "command", "command": ["false"]}, {"type": "github_release"}],
    )

    performer = _performer(workspace, repository, monkeypatch).perform_adhoc_release("solo")

    [result] = performer.results
    assert result.errors == ["Command failed: false. Check the logs for details."]
    assert result.successes == []
    assert performer.has_errors
    assert quiet_gh == [["false"]]


def test_whole_run_abort_skips_remaining_components(
    workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch, console: MockConsole
) -> None:
    workspace.add_component("alpha", directory="alpha")
    workspace.add_component("beta", directory="beta")
    workspace.commit("initial")
    repository = workspace.repository(
        {
            "components": [
                {
                    "name": "alpha",
                    "steps": [{"type": "command", "command": ["false"], "abort_pipeline_on_error": True}],
                },
                {"name": "beta"},
            ]
        }
    )

    performer = _performer(workspace, repository, monkeypatch)
    performer.perform_adhoc_release("alpha").perform_adhoc_release("beta")

    assert [r.unit_name for r in performer.results] == ["alpha"]
    assert "warning: Skipping beta because the release run was aborted." in console.messages


def test_each_component_gets_fresh_artifacts(workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch) -> None:
    workspace.add_component("alpha", directory="alpha")
    workspace.add_component("beta", directory="beta")
    workspace.commit("initial")
    docs = {"type": "build_docs", "command": ["make-docs"], "require_gh_pages_enabled": False, "clean": False}
    repository = workspace.repository(
        {
            "components": [
                {"name": "alpha", "directory": "alpha", "steps": [docs]},
                {"name": "beta", "directory": "beta", "steps": [docs]},
            ]
        }
    )

    def fake_docs(cmd: list[str], cwd: Path) -> Result[None, ProcessError]:
        del cmd
        (cwd / "doc").mkdir()
        (cwd / "doc" / "index.html").write_text(cwd.name, encoding="utf-8")
        return Ok(None)

    monkeypatch.setattr(steps_mod, "run_silent", fake_docs)
    performer = _performer(workspace, repository, monkeypatch)

    performer.perform_adhoc_release("alpha").perform_adhoc_release("beta")

    assert not performer.has_errors
    built = sorted((workspace.root.parent / "work").glob("build_docs-*"))
    assert len(built) == 2
    assert sorted((d / "doc" / "index.html").read_text(encoding="utf-8") for d in built) == ["alpha", "beta"]
    assert not any((d / "doc" / "doc").exists() for d in built)


def test_adhoc_release_errors_are_captured(workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch) -> None:
    repository = _solo(workspace)

    performer = _performer(workspace, repository, monkeypatch)
    performer.perform_adhoc_release("missing")
    performer.perform_adhoc_release("solo", Version.of(2, 0, 0))

    assert [r.errors for r in performer.results] == [
        ['Releasable unit "missing" not found.'],
        ["Asserted version 2.0.0 does not match version 1.0.0 found in the changelog."],
    ]


def test_errors_propagate_without_capture(workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch) -> None:
    repository = _solo(workspace)
    performer = _performer(workspace, repository, monkeypatch, capture_errors=False)

    with pytest.raises(ReleaseFailure, match='Releasable unit "missing" not found.'):
        performer.perform_adhoc_release("missing")


# =============================================================================
# Pull request releases
# =============================================================================


def test_pr_releases_without_pr(workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch) -> None:
    repository = _solo(workspace)

    performer = _performer(workspace, repository, monkeypatch).perform_pr_releases()

    assert performer.results == []
    assert performer.init_result.errors == ["Cannot perform PR releases because no pull request was found."]


def test_pr_number_not_found(workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch) -> None:
    repository = _solo(workspace)
    monkeypatch.setattr(repository, "load_pr", lambda number: None)

    performer = _performer(workspace, repository, monkeypatch, release_pr=5)

    assert performer.init_result.errors == ["Pull request number 5 not found."]


def test_pr_releases_found_by_merge_sha(workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch) -> None:
    repository = _solo(workspace)
    pr = _release_pr(workspace)

    performer = _performer(workspace, repository, monkeypatch, prs=(pr,)).perform_pr_releases()

    assert performer.pr == pr
    assert performer.pr_url == "https://github.com/example-org/widgets/pull/7"
    assert [(r.unit_name, r.version) for r in performer.results] == [("solo", Version.of(1, 0, 0))]


# =============================================================================
# Reporting
# =============================================================================


def test_report_text(workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch) -> None:
    repository = _solo(workspace)
    pr = _release_pr(workspace)

    performer = _performer(workspace, repository, monkeypatch, release_pr=pr).perform_pr_releases()
    lines = performer.build_report_text().splitlines()

    assert lines[0] == "## Release job results"
    assert lines[2].startswith("* Job started ")
    assert lines[3].startswith("* Job finished ")
    assert lines[4:] == [
        f"* Release SHA: {workspace.head()}",
        "* Release pull request: https://github.com/example-org/widgets/pull/7",
        "* This was a dry run. No releases were actually published.",
        "* **All releases completed successfully.**",
        "",
        "### solo 1.0.0",
        "",
        "* DRY RUN GitHub tag solo/v1.0.0.",
    ]


def test_report_text_lists_setup_errors_first(workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch) -> None:
    repository = _solo(workspace)

    performer = _performer(workspace, repository, monkeypatch, dry_run=False).perform_pr_releases()
    text = performer.build_report_text()

    assert "* **Release job completed with errors.**" in text
    assert "This was a dry run" not in text
    assert text.endswith("### Setup\n\n* ERROR: Cannot perform PR releases because no pull request was found.")


def test_report_results_marks_pr_complete(workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch) -> None:
    repository = _solo(workspace)
    recorder = _Recorder()
    recorder.install(repository, monkeypatch)

    performer = _performer(workspace, repository, monkeypatch, release_pr=_release_pr(workspace))
    performer.perform_pr_releases().report_results()

    [(number, labels, message)] = recorder.updates
    assert number == 7
    assert labels == [repository.settings.release_complete_label]
    assert message is not None and message.startswith("## Release job results")
    assert recorder.issues == []


def test_report_results_opens_issue_on_failure(workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch) -> None:
    repository = _solo(workspace)
    recorder = _Recorder()
    recorder.install(repository, monkeypatch)

    performer = _performer(workspace, repository, monkeypatch, release_pr=_release_pr(workspace))
    performer.perform_adhoc_release("missing").report_results()

    [(_, labels, _)] = recorder.updates
    assert labels == [repository.settings.release_error_label]
    [(title, body)] = recorder.issues
    assert title == "Release PR #7 failed with errors"
    assert "Release PR: https://github.com/example-org/widgets/pull/7" in body
    assert f"Commit: https://github.com/example-org/widgets/commit/{workspace.head()}" in body
    assert '* ERROR: Releasable unit "missing" not found.' in body


def test_report_results_without_pr(workspace: ReleaseWorkspace, monkeypatch: pytest.MonkeyPatch) -> None:
    repository = _solo(workspace)
    recorder = _Recorder()
    recorder.install(repository, monkeypatch)

    _performer(workspace, repository, monkeypatch).perform_adhoc_release("missing").report_results()

    assert recorder.updates == []
    assert [title for title, _ in recorder.issues] == ["Release job failed with errors"]
