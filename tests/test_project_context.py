import pytest

from gluekit.project_context import (
    FrontmatterError,
    ParsedMarkdown,
    ProjectContext,
    Role,
    Skill,
    append_role_to_system_prompt,
    build_skill_prompt,
    compose_system_prompt,
    load_context,
    parse_markdown_with_frontmatter,
)


def write_file(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_load_context_empty_work_dir():
    got = load_context("")
    assert got == ProjectContext()
    assert got.agents_md == ""
    assert got.skills == {}


def test_load_context_missing_agents_is_non_fatal(tmp_path):
    got = load_context(tmp_path)
    assert got.agents_md == ""
    assert got.skills == {}
    assert got.roles == {}


def test_load_context_reads_agents_md(tmp_path):
    write_file(tmp_path / "AGENTS.md", "Project rules.\n- be terse\n")
    got = load_context(tmp_path)
    assert "Project rules" in got.agents_md
    assert got.agents_md == "Project rules.\n- be terse"


def test_load_context_loads_skills(tmp_path):
    write_file(
        tmp_path / ".agents" / "skills" / "triage" / "SKILL.md",
        "---\nname: triage\ndescription: Triage an issue\n---\n\nTriage the given issue.\n",
    )
    write_file(
        tmp_path / ".agents" / "skills" / "no-frontmatter" / "SKILL.md",
        "Just instructions.\n",
    )

    got = load_context(tmp_path)
    assert len(got.skills) == 2
    triage = got.skills["triage"]
    assert triage.description == "Triage an issue"
    assert triage.instructions.startswith("Triage the given issue")
    plain = got.skills["no-frontmatter"]
    assert plain.description == ""
    assert "Just instructions" in plain.instructions


def test_load_context_skips_skill_dirs_without_file(tmp_path):
    (tmp_path / ".agents" / "skills" / "empty").mkdir(parents=True)
    write_file(tmp_path / ".agents" / "skills" / "real" / "SKILL.md", "Do it.")
    got = load_context(tmp_path)
    assert list(got.skills) == ["real"]


def test_load_context_malformed_frontmatter_errors(tmp_path):
    write_file(
        tmp_path / ".agents" / "skills" / "broken" / "SKILL.md",
        "---\nname: broken\nno closing\n",
    )
    with pytest.raises(FrontmatterError, match="frontmatter"):
        load_context(tmp_path)


def test_load_context_loads_roles(tmp_path):
    write_file(
        tmp_path / "roles" / "reviewer.md",
        "---\nname: critic\ndescription: Reviews code\nmodel: gemini-x\n---\nBe critical.\n",
    )
    write_file(tmp_path / "roles" / "Helper.MD", "Be helpful.\n")
    write_file(tmp_path / "roles" / "notes.txt", "ignored")

    got = load_context(tmp_path)
    assert set(got.roles) == {"critic", "Helper"}
    assert got.roles["critic"] == Role(
        name="critic", description="Reviews code", instructions="Be critical.", model="gemini-x"
    )
    assert got.roles["Helper"].instructions == "Be helpful."
    assert got.roles["Helper"].model == ""


def test_load_context_malformed_role_frontmatter_errors(tmp_path):
    write_file(tmp_path / "roles" / "bad.md", "---\nname: bad\n")
    with pytest.raises(FrontmatterError, match='role "bad.md"'):
        load_context(tmp_path)


def test_parse_markdown_with_frontmatter_defaults():
    got = parse_markdown_with_frontmatter("Hello.\n", "default")
    assert got.name == "default"
    assert got.body == "Hello."


def test_parse_markdown_with_frontmatter_fields():
    got = parse_markdown_with_frontmatter(
        "---\nname: alice\ndescription: greet\nmodel: gemini-x\n---\nHi\n", "fallback"
    )
    assert got == ParsedMarkdown(name="alice", description="greet", model="gemini-x", body="Hi")


def test_parse_markdown_blank_name_keeps_default():
    got = parse_markdown_with_frontmatter("---\nname:   \n---\nBody", "fallback")
    assert got.name == "fallback"
    assert got.body == "Body"


def test_parse_markdown_unterminated_raises():
    with pytest.raises(FrontmatterError, match="unterminated"):
        parse_markdown_with_frontmatter("---\nname: x\n", "d")


def test_compose_system_prompt_includes_agents_and_skill_catalog():
    skills = {"a": Skill(name="a", description="one"), "b": Skill(name="b")}
    got = compose_system_prompt("base", "agents", skills)
    assert "base" in got and "agents" in got
    assert "## Available Skills" in got
    assert got.index("- a") < got.index("- b")
    assert got == "base\n\nagents\n\n## Available Skills\n- a — one\n- b"


def test_compose_system_prompt_skips_blank_parts():
    assert compose_system_prompt("  ", "", {}) == ""
    assert compose_system_prompt("", " rules ", None) == "rules"


def test_build_skill_prompt_without_args():
    skill = Skill(name="greet", instructions="Greet the person.")
    assert build_skill_prompt(skill, None) == "Greet the person."


def test_build_skill_prompt_appends_args():
    skill = Skill(name="greet", instructions="Greet the person from arguments.")
    got = build_skill_prompt(skill, {"name": "Alice"})
    assert got == 'Greet the person from arguments.\n\nArguments:\n{\n  "name": "Alice"\n}'
    assert '"name": "Alice"' in got


def test_build_skill_prompt_unencodable_args():
    with pytest.raises(TypeError, match="encode skill args"):
        build_skill_prompt(Skill(name="x"), {"v": object()})


def test_append_role_to_system_prompt():
    role = Role(name="critic", instructions="  Be critical.  ")
    assert append_role_to_system_prompt("base ", role) == "base\n\n## Role: critic\nBe critical."
    assert append_role_to_system_prompt("", role) == "## Role: critic\nBe critical."


def test_append_role_without_instructions_is_unchanged():
    role = Role(name="empty", instructions="   ")
    assert append_role_to_system_prompt(" base ", role) == " base "