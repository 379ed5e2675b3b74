"""Project context loaded from a working directory.

The context is made of three parts. ``AGENTS.md`` holds project rules for
the system prompt. Skills live under ``.agents/skills/<name>/SKILL.md``.
Roles live under ``roles/*.md``. Skill and role files may begin with a
``---`` frontmatter block that sets ``name``, ``description`` and
``model``.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


class FrontmatterError(ValueError):
    """A Markdown file opened a frontmatter block that could not be parsed."""


@dataclass
class Skill:
    """A reusable prompt defined in Markdown."""

    name: str
    description: str = ""
    instructions: str = ""


@dataclass
class Role:
    """A named instruction profile with an optional model override."""

    name: str
    description: str = ""
    instructions: str = ""
    model: str = ""


@dataclass
class ProjectContext:
    """State loaded from a working directory by :func:`load_context`."""

    agents_md: str = ""
    skills: dict[str, Skill] = field(default_factory=dict)
    roles: dict[str, Role] = field(default_factory=dict)


@dataclass
class ParsedMarkdown:
    """The frontmatter fields and trimmed body of a Markdown document."""

    name: str
    description: str = ""
    model: str = ""
    body: str = ""


def load_context(work_dir: str | os.PathLike[str] | None) -> ProjectContext:
    """Load AGENTS.md, skills and roles from ``work_dir``.

    A blank ``work_dir`` gives an empty context. A missing AGENTS.md or a
    missing skills or roles directory is not an error. A malformed
    frontmatter block raises :class:`FrontmatterError`.
    """
    if work_dir is None or not str(work_dir).strip():
        return ProjectContext()
    root = Path(work_dir)

    try:
        agents_md = (root / "AGENTS.md").read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        agents_md = ""

    return ProjectContext(
        agents_md=agents_md,
        skills=_load_skills(root / ".agents" / "skills"),
        roles=_load_roles(root / "roles"),
    )


def _sorted_entries(directory: Path) -> list[Path] | None:
    try:
        return sorted(directory.iterdir(), key=lambda entry: entry.name)
    except FileNotFoundError:
        return None


def _load_skills(skills_dir: Path) -> dict[str, Skill]:
    entries = _sorted_entries(skills_dir)
    skills: dict[str, Skill] = {}
    for entry in entries or []:
        if not entry.is_dir():
            continue
        try:
            data = (entry / "SKILL.md").read_text(encoding="utf-8")
        except FileNotFoundError:
            continue
        try:
            parsed = parse_markdown_with_frontmatter(data, entry.name)
        except FrontmatterError as exc:
            raise FrontmatterError(f'skill "{entry.name}" frontmatter: {exc}') from exc
        skills[parsed.name] = Skill(
            name=parsed.name,
            description=parsed.description,
            instructions=parsed.body,
        )
    return skills


def _load_roles(roles_dir: Path) -> dict[str, Role]:
    entries = _sorted_entries(roles_dir)
    roles: dict[str, Role] = {}
    for entry in entries or []:
        if entry.is_dir() or not entry.name.lower().endswith(".md"):
            continue
        data = entry.read_text(encoding="utf-8")
        default_name = entry.name[: entry.name.rfind(".")]
        try:
            parsed = parse_markdown_with_frontmatter(data, default_name)
        except FrontmatterError as exc:
            raise FrontmatterError(f'role "{entry.name}" frontmatter: {exc}') from exc
        roles[parsed.name] = Role(
            name=parsed.name,
            description=parsed.description,
            instructions=parsed.body,
            model=parsed.model,
        )
    return roles


def parse_markdown_with_frontmatter(content: str, default_name: str) -> ParsedMarkdown:
    """Split ``content`` into frontmatter fields and a trimmed body.

    Without frontmatter the whole trimmed content is the body and the name
    is ``default_name``. An opening ``---`` without a closing one raises
    :class:`FrontmatterError`.
    """
    trimmed = content.strip()
    parsed = ParsedMarkdown(name=default_name, body=trimmed)
    if not (trimmed.startswith("---\n") or trimmed.startswith("---\r\n")):
        return parsed

    rest = trimmed.removeprefix("---\n").removeprefix("---\r\n")
    end = rest.find("\n---")
    if end < 0:
        raise FrontmatterError("frontmatter is unterminated (expected closing '---')")

    frontmatter = rest[:end]
    body = rest[end:].removeprefix("\n---").removeprefix("\n")
    parsed.body = body.strip()
    for line in frontmatter.split("\n"):
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip()
        value = value.strip()
        if key == "name":
            if value:
                parsed.name = value
        elif key == "description":
            parsed.description = value
        elif key == "model":
            parsed.model = value
    return parsed


def compose_system_prompt(base: str, agents_md: str, skills: Mapping[str, Skill] | None) -> str:
    """Join the base prompt, AGENTS.md and a sorted skill catalog."""
    parts = [text.strip() for text in (base, agents_md) if text.strip()]
    if skills:
        lines = ["## Available Skills"]
        for name in sorted(skills):
            skill = skills[name]
            entry = f"- {skill.name}"
            if skill.description:
                entry += f" — {skill.description}"
            lines.append(entry)
        parts.append("\n".join(lines))
    return "\n\n".join(parts)


def build_skill_prompt(skill: Skill, args: Any = None) -> str:
    """Return the skill's instructions, followed by ``args`` as indented JSON."""
    if args is None:
        return skill.instructions
    try:
        encoded = json.dumps(args, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise TypeError(f"encode skill args: {exc}") from exc
    return f"{skill.instructions}\n\nArguments:\n{encoded}"


def append_role_to_system_prompt(system_prompt: str, role: Role) -> str:
    """Append a ``## Role`` block to the prompt when the role has instructions."""
    if not role.instructions.strip():
        return system_prompt
    block = f"## Role: {role.name}\n{role.instructions.strip()}"
    if not system_prompt.strip():
        return block
    return f"{system_prompt.strip()}\n\n{block}"