from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from relctl.core.config import Config
from relctl.core.project import Project
from relctl.services.release.model import Category

VERSION_FILE = "pyproject.toml"
LOCK_FILE = "uv.lock"
CHANGELOG_FILE = "CHANGELOG.md"

# The only files a release commit may touch, and the only files cleanup restores.
RELEASE_FILES: tuple[str, ...] = (VERSION_FILE, LOCK_FILE, CHANGELOG_FILE)

REQUIRED_TOOLS: tuple[tuple[str, str], ...] = (
    ("git", "Install Git: https://git-scm.com/"),
    ("gh", "Install GitHub CLI: https://cli.github.com/"),
    ("docker", "Install Docker: https://docs.docker.com/get-docker/"),
)

# Label -> section, in section order. An item with several of these labels
# is listed under each of them.
LABEL_CATEGORIES: tuple[tuple[str, Category], ...] = (
    ("enhancement", Category.ADDED),
    ("bug", Category.FIXED),
    ("documentation", Category.DOCUMENTATION),
    ("security", Category.SECURITY),
    ("breaking", Category.BREAKING),
)

MILESTONE_ISSUE_LIMIT = 100
RECENT_ISSUE_LIMIT = 50
RECENT_ISSUE_DAYS = 30
UNTAGGED_COMMIT_LIMIT = 50
RELATED_COMMIT_LIMIT = 10
ORPHAN_COMMIT_LIMIT = 20

LINT_IMAGE = "node:24-alpine"
DEV_UP_TARGET = "dev-up"


@dataclass(frozen=True, slots=True)
class ReleaseSettings:
    project: Project
    root: Path
    repo_slug: str | None  # None: gh infers it from the checkout's remote
    container: str
    integration_branch: str
    final_branch: str
    remote: str
    release_label: str

    @property
    def upstream(self) -> str:
        return f"{self.remote}/{self.integration_branch}"


def project_root(*, config: Config, project: Project, cwd: Path) -> Path:
    if config.root is not None:
        return config.root / project.value
    for candidate in (cwd, *cwd.parents):
        if candidate.name == project.value:
            return candidate
    return cwd / project.value


def resolve_settings(*, config: Config, project: Project, cwd: Path) -> ReleaseSettings:
    root = project_root(config=config, project=project, cwd=cwd)
    prefix = config.container_prefix or root.parent.name
    slug = f"{config.owner}/{config.repo_prefix}{project.value}" if config.owner else None
    return ReleaseSettings(
        project=project,
        root=root,
        repo_slug=slug,
        container=project.container_name(prefix),
        integration_branch=config.integration_branch,
        final_branch=config.final_branch,
        remote=config.remote,
        release_label=config.release_label,
    )
