"""Release engine.

Layers, leaves first:
- semver, change_set: version levels and conventional-commit parsing
- settings, step_config, coordination: typed repository settings
- changelog_file, version_file, component: releasable components
- gh, pull_request, repository: git and GitHub façade
- request_spec, request_logic: what to release and the release PR
- artifact_dir, steps, performer: executing releases
"""

from __future__ import annotations
