"""Vault note to Hugo content conversion using regex passes.

The source header is replaced by front matter rendered from a template,
and vault-specific syntax in the body is rewritten for Hugo:

    ![[diagram.png]]          -> ![diagram.png](/assets/diagram.png)
    [[Other Note]]            -> [Other Note]({{< ref "/other-note" >}})
    [[Other Note|see here]]   -> [see here]({{< ref "/other-note" >}})
    [[Other Note#Setup]]      -> [Other Note#Setup]({{< ref "/other-note#setup" >}})

Fenced code blocks and inline code are left untouched.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import date

import yaml

from ..config import DEFAULT_FRONTMATTER_TEMPLATE
from ..tracking.frontmatter import extract_metadata, split_frontmatter
from ..tracking.models import Metadata, MetadataValue
from .common import ConversionResult, safe_filename, slugify

logger = logging.getLogger(__name__)

_EMBED_RE = re.compile(r"!\[\[(.*?)\]\]")
_LINK_RE = re.compile(r"\[\[(.*?)(?:\|(.*?))?\]\]")
_CODE_RE = re.compile(r"^```.*?^```[ \t]*$|`[^`\n]+`", re.MULTILINE | re.DOTALL)
_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")

# Keys rendered by the template itself or meaningless to Hugo.
_RESERVED_KEYS = frozenset({"title", "date", "publish"})


class HugoConverter:
    """Convert vault notes into Hugo content files.

    Args:
        frontmatter_template: Front matter body with ``{{title}}``,
            ``{{date}}`` and ``{{key}}`` placeholders.
        file_extension: Extension of generated files.
        image_handling: ``copy`` links embeds under ``/assets/``;
            ``reference`` links them with a Hugo ``ref`` shortcode.
        today: Clock used for ``{{date}}`` when the note has no date.
    """

    def __init__(
        self,
        frontmatter_template: str = DEFAULT_FRONTMATTER_TEMPLATE,
        file_extension: str = ".md",
        image_handling: str = "copy",
        today: Callable[[], date] = date.today,
    ):
        self.frontmatter_template = frontmatter_template
        self.file_extension = file_extension
        self.image_handling = image_handling
        self._today = today

    def convert(self, content: str, identity: str) -> ConversionResult:
        """
        Convert one note.

        Args:
            content: Raw note content, header included
            identity: Vault identity of the note (used for title and filename)

        Returns:
            ConversionResult with the Hugo file content and filename

        Raises:
            ConversionError: If no filename can be derived from *identity*
        """
        warnings: list[str] = []
        filename = safe_filename(identity, self.file_extension)
        metadata = extract_metadata(content) or {}
        _, body = split_frontmatter(content)

        stem = identity.rsplit("/", 1)[-1].rsplit(".", 1)[0]
        front_matter = self._render_front_matter(metadata, stem, warnings)
        body = self._convert_body(body, warnings)

        return ConversionResult(
            content=f"---\n{front_matter}\n---\n\n{body}",
            filename=filename,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Front matter
    # ------------------------------------------------------------------

    def _render_front_matter(
        self, metadata: Metadata, stem: str, warnings: list[str]
    ) -> str:
        title = metadata.get("title")
        if not isinstance(title, str) or not title:
            title = stem
        note_date = metadata.get("date")
        if not isinstance(note_date, str) or not note_date:
            note_date = self._today().isoformat()

        values: dict[str, str] = {
            "title": title.replace('"', '\\"'),
            "date": note_date,
        }
        extras: dict[str, MetadataValue] = {}
        for key, value in metadata.items():
            if key in _RESERVED_KEYS:
                continue
            if f"{{{{{key}}}}}" in self.frontmatter_template:
                values[key] = _template_value(value)
            else:
                extras[key] = value

        def substitute(match: re.Match[str]) -> str:
            key = match.group(1)
            if key in values:
                return values[key]
            warnings.append(
                f"Front matter placeholder '{{{{{key}}}}}' has no value"
            )
            return ""

        rendered = _PLACEHOLDER_RE.sub(substitute, self.frontmatter_template)
        lines = [rendered.rstrip("\n")]
        if extras:
            lines.append(_dump_yaml(extras, flow=None))
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def _convert_body(self, body: str, warnings: list[str]) -> str:
        # Protect code so link syntax inside it survives.
        protected: list[str] = []

        def stash(match: re.Match[str]) -> str:
            protected.append(match.group(0))
            return f"\x00{len(protected) - 1}\x00"

        text = _CODE_RE.sub(stash, body)
        text = self._convert_embeds(text)
        text = self._convert_links(text, warnings)
        return re.sub(
            r"\x00(\d+)\x00", lambda m: protected[int(m.group(1))], text
        )

    def _convert_embeds(self, text: str) -> str:
        """Convert embeds (before links, since both use double brackets)."""

        def replace(match: re.Match[str]) -> str:
            target = match.group(1).split("|", 1)[0].strip()
            if not target:
                return match.group(0)
            if self.image_handling == "copy":
                return f"![{target}](/assets/{target})"
            asset = re.sub(r"\s+", "-", target).lower()
            return f'![{target}]({{{{< ref "/{asset}" >}}}})'

        return _EMBED_RE.sub(replace, text)

    def _convert_links(self, text: str, warnings: list[str]) -> str:
        def replace(match: re.Match[str]) -> str:
            target = match.group(1).strip()
            alias = (match.group(2) or "").strip()
            if not target:
                warnings.append("Empty wiki link left unconverted")
                return match.group(0)
            return f'[{alias or target}]({{{{< ref "/{_ref_path(target)}" >}}}})'

        return _LINK_RE.sub(replace, text)


def _ref_path(target: str) -> str:
    page, _, anchor = target.partition("#")
    path = slugify(page.rsplit("/", 1)[-1].removesuffix(".md"))
    if anchor:
        path = f"{path}#{slugify(anchor)}"
    return path


def _template_value(value: MetadataValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return _dump_yaml(value, flow=True)
    return value


def _dump_yaml(data: dict | list, flow: bool | None) -> str:
    """Dump a mapping or list as YAML without a trailing newline.

    ``flow=None`` writes mappings in block style with lists inline.
    """
    return yaml.safe_dump(
        data,
        default_flow_style=flow,
        allow_unicode=True,
        sort_keys=False,
        width=float("inf"),
    ).rstrip("\n")
