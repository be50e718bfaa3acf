from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from relctl.core.result import Err, Ok, Result
from relctl.output.console import ConsoleProtocol, Style
from relctl.services.release.config import (
    LABEL_CATEGORIES,
    MILESTONE_ISSUE_LIMIT,
    ORPHAN_COMMIT_LIMIT,
    RECENT_ISSUE_DAYS,
    RECENT_ISSUE_LIMIT,
    RELATED_COMMIT_LIMIT,
    UNTAGGED_COMMIT_LIMIT,
)
from relctl.services.release.editor import editor_template, strip_editor_comments
from relctl.services.release.errors import ReleaseError, external_failure
from relctl.services.release.model import (
    Category,
    ChangelogBullet,
    ChangelogEntry,
    ChangelogSection,
    CommitRecord,
    ReleaseVersion,
    WorkItem,
)
from relctl.services.release.ports import EditorPort, PlatformPort, VcsPort
from relctl.services.release.references import (
    extract_references,
    has_any_reference,
    is_merge_commit,
    is_release_chore,
    references,
    strip_reference,
)


@dataclass(frozen=True, slots=True)
class ChangelogRequest:
    """Where the entry content comes from. First non-empty source wins:
    inline text, then file, then editor, then hybrid generation."""

    inline: str | None = None
    file: Path | None = None
    use_editor: bool = False
    milestone: str | None = None


@dataclass(frozen=True, slots=True)
class ChangelogInputs:
    work_items: tuple[WorkItem, ...]
    commits: tuple[CommitRecord, ...]
    since_tag: str | None


def _collapse(text: str) -> str:
    out: list[str] = []
    for line in text.strip("\n").splitlines():
        line = line.rstrip()
        if not line and (not out or not out[-1]):
            continue
        out.append(line)
    return "\n".join(out).strip("\n")


def resolve_custom_content(
    request: ChangelogRequest,
    *,
    version: ReleaseVersion,
    editor: EditorPort | None,
    console: ConsoleProtocol,
) -> Result[str | None, ReleaseError]:
    """Operator-provided body, or None to fall through to generation."""
    if request.inline is not None and request.inline.strip():
        console.info("changelog: using inline content")
        return Ok(_collapse(request.inline))

    if request.file is not None:
        try:
            text = request.file.read_text(encoding="utf-8")
        except OSError as e:
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=f"cannot read changelog file: {request.file}",
                    hint=str(e),
                )
            )
        if text.strip():
            console.info(f"changelog: using content from {request.file}")
            return Ok(_collapse(text))

    if request.use_editor:
        if editor is None:
            return Err(ReleaseError(kind="invalid_input", message="no editor available"))
        edited = editor.edit(editor_template(version))
        if isinstance(edited, Err):
            return edited
        body = strip_editor_comments(edited.value)
        if body:
            console.info("changelog: using editor content")
            return Ok(body)
        console.info("changelog: editor content empty, generating")

    return Ok(None)


def _within_days(item: WorkItem, *, now: datetime, days: int) -> bool:
    if item.closed_at is None:
        return False
    try:
        closed = datetime.fromisoformat(item.closed_at.replace("Z", "+00:00"))
    except ValueError:
        return False
    if closed.tzinfo is None or now.tzinfo is None:
        closed = closed.replace(tzinfo=None)
        now = now.replace(tzinfo=None)
    return closed >= now - timedelta(days=days)


def collect_inputs(
    *,
    vcs: VcsPort,
    platform: PlatformPort,
    milestone: str | None,
    now: datetime,
) -> Result[ChangelogInputs, ReleaseError]:
    if milestone:
        items = platform.list_closed_work_items(milestone=milestone, limit=MILESTONE_ISSUE_LIMIT)
    else:
        items = platform.list_closed_work_items(milestone=None, limit=RECENT_ISSUE_LIMIT)
    if isinstance(items, Err):
        return items
    work_items = items.value
    if not milestone:
        work_items = [i for i in work_items if _within_days(i, now=now, days=RECENT_ISSUE_DAYS)]

    tag = vcs.last_tag()
    if isinstance(tag, Err):
        return Err(external_failure(what="cannot find the last tag", detail=tag.error.message))
    if tag.value:
        log = vcs.log(f"{tag.value}..HEAD")
    else:
        log = vcs.log(max_count=UNTAGGED_COMMIT_LIMIT)
    if isinstance(log, Err):
        return Err(external_failure(what="cannot read commit history", detail=log.error.message))

    commits = tuple(
        CommitRecord(sha=e.sha, subject=e.subject, references=extract_references(e.subject))
        for e in log.value
    )
    return Ok(ChangelogInputs(work_items=tuple(work_items), commits=commits, since_tag=tag.value))


def _item_bullet(item: WorkItem, commits: tuple[CommitRecord, ...]) -> ChangelogBullet:
    related = [c for c in commits if references(c.subject, item.number)][:RELATED_COMMIT_LIMIT]
    stripped = (strip_reference(c.subject, item.number) for c in related)
    return ChangelogBullet(
        text=f"**{item.title}** (#{item.number})",
        children=tuple(text for text in stripped if text),
    )


def is_orphan(commit: CommitRecord) -> bool:
    return (
        not has_any_reference(commit.subject)
        and not is_merge_commit(commit.subject)
        and not is_release_chore(commit.subject)
    )


def generate_sections(
    work_items: tuple[WorkItem, ...], commits: tuple[CommitRecord, ...]
) -> tuple[ChangelogSection, ...]:
    """Hybrid generation: labeled work items with their commits, then orphans."""
    sections: list[ChangelogSection] = []
    for label, category in LABEL_CATEGORIES:
        matching = {i.number: i for i in work_items if label in i.labels}
        if not matching:
            continue
        ordered = [matching[n] for n in sorted(matching)]
        sections.append(
            ChangelogSection(
                category=category,
                bullets=tuple(_item_bullet(item, commits) for item in ordered),
            )
        )

    orphans = [c for c in commits if is_orphan(c)][:ORPHAN_COMMIT_LIMIT]
    if orphans:
        sections.append(
            ChangelogSection(
                category=Category.CHANGED,
                bullets=tuple(ChangelogBullet(text=c.subject) for c in orphans),
            )
        )

    if not sections:
        sections.append(
            ChangelogSection(
                category=Category.CHANGED,
                bullets=(ChangelogBullet(text="Version bump"),),
            )
        )
    return tuple(sections)


def render_entry(entry: ChangelogEntry) -> str:
    lines = [f"## [{entry.version}] - {entry.date}", ""]
    if entry.body is not None:
        lines.extend(entry.body.strip("\n").splitlines())
        return "\n".join(lines) + "\n"

    for index, section in enumerate(entry.sections):
        if index:
            lines.append("")
        lines.append(f"### {section.category.value}")
        lines.append("")
        for bullet in section.bullets:
            lines.append(f"- {bullet.text}")
            lines.extend(f"  - {child}" for child in bullet.children)
    return "\n".join(lines) + "\n"


def build_entry(
    request: ChangelogRequest,
    *,
    version: ReleaseVersion,
    date: str,
    vcs: VcsPort,
    platform: PlatformPort,
    editor: EditorPort | None,
    console: ConsoleProtocol,
    now: datetime,
    verbose: bool = False,
) -> Result[ChangelogEntry, ReleaseError]:
    custom = resolve_custom_content(request, version=version, editor=editor, console=console)
    if isinstance(custom, Err):
        return custom
    if custom.value is not None:
        return Ok(ChangelogEntry(version=version, date=date, body=custom.value))

    if request.milestone:
        console.info(f"changelog: generating from milestone '{request.milestone}' and commits")
    else:
        console.info(
            f"changelog: generating from issues closed in the last {RECENT_ISSUE_DAYS} days"
        )

    inputs = collect_inputs(vcs=vcs, platform=platform, milestone=request.milestone, now=now)
    if isinstance(inputs, Err):
        return inputs

    data = inputs.value
    if verbose:
        since = data.since_tag or "(no tag)"
        console.print(
            f"{len(data.work_items)} closed issues, {len(data.commits)} commits since {since}",
            Style.DIM,
        )
    return Ok(
        ChangelogEntry(
            version=version,
            date=date,
            sections=generate_sections(data.work_items, data.commits),
        )
    )
