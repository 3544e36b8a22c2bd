"""Repository changes and pull request text for a resolved release request."""

from __future__ import annotations

from releaser.release.repository import Repository
from releaser.release.request_spec import RequestSpec, ResolvedUnit

__all__ = ["RequestLogic"]


class RequestLogic:
    def __init__(self, repository: Repository, request_spec: RequestSpec) -> None:
        self._repository = repository
        self._settings = repository.settings
        self._reporter = repository.reporter
        self._request_spec = request_spec

    def verify_unit_status(self) -> RequestLogic:
        """Check that no component already carries the version to be released."""
        with self._reporter.accumulate_errors("One or more releasable units was in an inconsistent state"):
            if self._request_spec.empty:
                self._reporter.error("No units to release.")
            for unit_spec in self._request_spec.resolved_units:
                component = self._repository.component(unit_spec.unit_name)
                if component is None or unit_spec.version is None:
                    continue
                changelog_version = component.changelog_file.current_version()
                if changelog_version is not None and changelog_version >= unit_spec.version:
                    self._reporter.error(
                        f"Cannot add version {unit_spec.version} to {component.name} changelog"
                        f" because the existing changelog already contains version {changelog_version}."
                    )
                constant_version = component.version_file.current_version()
                if constant_version is not None and constant_version >= unit_spec.version:
                    self._reporter.error(
                        f"Cannot change {component.name} version constant to {unit_spec.version}"
                        f" because the existing version constant is already at {constant_version}."
                    )
        return self

    def determine_release_branch(self) -> str:
        if self._request_spec.single_unit:
            return self._repository.release_branch_name(self._request_spec.resolved_units[0].unit_name)
        return self._repository.multi_release_branch_name()

    def build_commit_title(self) -> str:
        units = self._request_spec.resolved_units
        if self._request_spec.single_unit:
            return f"release: Release {_format_unit_info(units[0])}"
        return f"release: Release {len(units)} items"

    def build_commit_details(self) -> str:
        if self._request_spec.single_unit:
            return ""
        return "\n".join(f"* {_format_unit_info(unit)}" for unit in self._request_spec.resolved_units)

    def build_pr_body(self) -> str:
        if self._settings.enable_release_automation:
            instructions = self._automation_instructions()
        else:
            instructions = "You can run the `releaser perform` command once these changes are merged."
        return "\n\n".join([self._pr_body_header(), instructions, self._pr_body_footer()]) + "\n"

    def determine_pr_labels(self) -> list[str] | None:
        if not self._settings.enable_release_automation:
            return None
        return [self._settings.release_pending_label]

    def change_files(self) -> None:
        """Add changelog entries and bump version constants in the working tree."""
        for unit_spec in self._request_spec.resolved_units:
            component = self._repository.component(unit_spec.unit_name)
            if component is None or unit_spec.version is None:
                continue
            component.changelog_file.append(unit_spec.change_set, unit_spec.version)
            if not component.version_file.update_version(unit_spec.version):
                self._reporter.error(
                    f"Unable to update {component.settings.version_constant} in {component.version_file.path}"
                )

    # -------------------------------------------------------------------------
    # PR text
    # -------------------------------------------------------------------------

    def _automation_instructions(self) -> str:
        label = self._settings.release_pending_label
        return (
            " *  To confirm this release, merge this pull request, ensuring the"
            f' "{label}" label is set. The release script will trigger'
            " automatically on merge.\n"
            " *  To abort this release, close this pull request without merging."
        )

    def _pr_body_header(self) -> str:
        lines = ["This pull request prepares new releases for the following components:", ""]
        lines.extend(f" *  {_format_unit_info(unit, bold=True)}" for unit in self._request_spec.resolved_units)
        lines.append("")
        lines.append(
            "For each releasable component, this pull request modifies the version"
            " and provides an initial changelog entry based on"
            " [conventional commit](https://conventionalcommits.org) messages. You can"
            " edit these changes before merging, to release a different version or to"
            " alter the changelog text."
        )
        return "\n".join(lines)

    def _pr_body_footer(self) -> str:
        lines = ["The generated changelog entries have been copied below:"]
        for unit in self._request_spec.resolved_units:
            lines.extend(["", "----", "", f"## {unit.unit_name}", ""])
            for group in unit.change_set.groups:
                lines.extend(f" *  {line}" for line in group.prefixed_changes)
        return "\n".join(lines)


def _format_unit_info(unit: ResolvedUnit, *, bold: bool = False) -> str:
    last_release = f"was {unit.last_version}" if unit.last_version is not None else "initial release"
    decor = "**" if bold else ""
    return f"{decor}{unit.unit_name} {unit.version}{decor} ({last_release})"
