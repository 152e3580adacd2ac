"""Markdown and TOML templates for site and vault output."""

from string import Template

ELLIPSIS = "..."


SITE_README = Template("""\
# Session Journal Site

Generated from `${journal_dir}`. Do not edit the files here by hand;
they are overwritten on every run.

## Regenerate

```
sessionpress site
```

## Preview

```
cd ${output_dir} && zensical serve
```
""")


VAULT_README = Template("""\
# Session Journal Vault

Obsidian vault generated from `${journal_dir}`.

Open it with *Open folder as vault*. Start from [[Home]], which links
to the topic, file and session-type hubs.

Regenerate with:

```
sessionpress obsidian
```
""")


OBSIDIAN_APP_CONFIG = """\
{
  "alwaysUpdateLinks": true,
  "newLinkFormat": "shortest",
  "useMarkdownLinks": false,
  "showFrontmatter": true
}
"""


ZENSICAL_PROJECT = Template("""\
[project]
site_name = "${site_name}"
site_description = "AI session history and notes"
""")


ZENSICAL_THEME = """\
[project.theme]
language = "en"
features = [
    "content.code.copy",
    "navigation.instant",
    "navigation.top",
    "search.highlight",
]

[[project.theme.palette]]
scheme = "default"
toggle.icon = "lucide/sun"
toggle.name = "Switch to dark mode"

[[project.theme.palette]]
scheme = "slate"
toggle.icon = "lucide/moon"
toggle.name = "Switch to light mode"
"""


SOURCE_LINK = Template("*[View source](file://${abs_path})* · `${rel_path}`")

SUMMARY_LINE = Template("> **Summary**: ${summary}")

INDEX_INTRO = "Browse your AI session history."
SUGGESTIONS_NOTE = "*Auto-generated suggestion prompts from Claude Code.*"


def format_size(size: int) -> str:
    """Human-readable byte count: ``512B``, ``1.5KB``, ``2.0MB``."""
    if size < 1024:
        return f"{size}B"
    kb = size / 1024
    if kb < 1024:
        return f"{kb:.1f}KB"
    return f"{kb / 1024:.1f}MB"


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def toml_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
