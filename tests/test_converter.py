"""
Tests for the vault note to Hugo content converter.
"""

import unittest
from datetime import date

from hugo_publisher.converters import (
    ConversionError,
    HugoConverter,
    safe_filename,
    slugify,
)


def _converter(**kwargs):
    return HugoConverter(today=lambda: date(2024, 1, 2), **kwargs)


class TestSlugify(unittest.TestCase):
    """Test slug generation for filenames and ref targets."""

    def test_basic(self):
        self.assertEqual(slugify("  My First Post! "), "my-first-post")

    def test_dash_runs_collapsed(self):
        self.assertEqual(slugify("a -- b"), "a-b")

    def test_unicode_letters_kept(self):
        self.assertEqual(slugify("Café Notes"), "café-notes")

    def test_only_punctuation(self):
        self.assertEqual(slugify("!!!"), "")


class TestSafeFilename(unittest.TestCase):
    """Test destination filename derivation."""

    def test_basename_only(self):
        self.assertEqual(safe_filename("Drafts/My Post.md"), "my-post.md")

    def test_custom_extension(self):
        self.assertEqual(safe_filename("a.md", ".markdown"), "a.markdown")

    def test_unusable_name_raises(self):
        with self.assertRaises(ConversionError):
            safe_filename("!!!.md")

    def test_conversion_error_is_value_error(self):
        self.assertTrue(issubclass(ConversionError, ValueError))


class TestFrontMatter(unittest.TestCase):
    """Test front matter rendering from the note header."""

    def test_default_template(self):
        """The header is replaced; extra keys are appended as YAML."""
        note = (
            "---\ntitle: Hello\npublish: true\ntags: [a, b]\n"
            "author: Ann\nfeatured: true\n---\nBody\n"
        )
        result = _converter().convert(note, "posts/Hello World.md")

        self.assertEqual(
            result.content,
            '---\ntitle: "Hello"\ndate: 2024-01-02\ndraft: false\n'
            "tags: [a, b]\nauthor: Ann\nfeatured: true\n---\n\nBody\n",
        )
        self.assertEqual(result.filename, "hello-world.md")
        self.assertEqual(result.warnings, [])

    def test_publish_key_dropped(self):
        result = _converter().convert("---\npublish: true\n---\nx", "a.md")
        self.assertNotIn("publish", result.content)

    def test_title_falls_back_to_stem(self):
        result = _converter().convert("Just text.\n", "notes/My Note.md")
        self.assertIn('title: "My Note"', result.content)
        self.assertTrue(result.content.endswith("---\n\nJust text.\n"))

    def test_title_quotes_escaped(self):
        result = _converter().convert(
            '---\ntitle: Say "hi"\n---\nx', "a.md"
        )
        self.assertIn('title: "Say \\"hi\\""', result.content)

    def test_note_date_overrides_today(self):
        result = _converter().convert("---\ndate: 2023-05-06\n---\nx", "a.md")
        self.assertIn("date: 2023-05-06", result.content)
        self.assertNotIn("2024-01-02", result.content)

    def test_custom_placeholders(self):
        template = "title: {{title}}\nauthor: {{author}}\ntags: {{tags}}"
        result = _converter(frontmatter_template=template).convert(
            "---\ntitle: T\nauthor: Ann\ntags: [x, y]\n---\nx", "a.md"
        )
        self.assertTrue(
            result.content.startswith(
                "---\ntitle: T\nauthor: Ann\ntags: [x, y]\n---\n"
            )
        )
        self.assertEqual(result.warnings, [])

    def test_unresolved_placeholder_warns(self):
        template = "title: {{title}}\nsubtitle: {{subtitle}}"
        result = _converter(frontmatter_template=template).convert(
            "---\ntitle: T\n---\nx", "a.md"
        )
        self.assertIn("subtitle: \n", result.content)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("{{subtitle}}", result.warnings[0])

    def test_warnings_reset_between_notes(self):
        converter = _converter(frontmatter_template="x: {{missing}}")
        converter.convert("body", "a.md")
        result = converter.convert("body", "b.md")
        self.assertEqual(len(result.warnings), 1)

    def test_nested_conversion_keeps_warnings_apart(self):
        """A conversion started inside another one has its own warnings."""
        inner = []

        def today():
            if not inner:
                inner.append(None)
                inner[0] = converter.convert("[[]]", "inner.md")
            return date(2024, 1, 2)

        converter = HugoConverter(
            frontmatter_template="x: {{missing}}", today=today
        )
        outer = converter.convert("body", "outer.md")

        self.assertEqual(len(outer.warnings), 1)
        self.assertIn("{{missing}}", outer.warnings[0])
        self.assertEqual(len(inner[0].warnings), 2)
        self.assertIn("Empty wiki link left unconverted", inner[0].warnings)

    def test_extra_values_dumped_as_yaml(self):
        result = _converter().convert(
            '---\nflag: "true"\nsummary: Part 1: intro\n---\nx', "a.md"
        )
        self.assertIn("flag: 'true'\n", result.content)
        self.assertIn("summary: 'Part 1: intro'\n", result.content)

    def test_bom_and_crlf_header(self):
        note = "\ufeff---\r\ntitle: Windows\r\npublish: true\r\n---\r\nBody\r\n"
        result = _converter().convert(note, "a.md")
        self.assertIn('title: "Windows"', result.content)
        self.assertTrue(result.content.endswith("\n\nBody\n"))


class TestBodyConversion(unittest.TestCase):
    """Test wiki link and embed rewriting."""

    def _body(self, text, **kwargs):
        content = _converter(**kwargs).convert(text, "a.md").content
        return content.split("---\n\n", 1)[1]

    def test_plain_link(self):
        self.assertEqual(
            self._body("See [[Other Note]]."),
            'See [Other Note]({{< ref "/other-note" >}}).',
        )

    def test_link_with_alias(self):
        self.assertEqual(
            self._body("[[Other Note|see here]]"),
            '[see here]({{< ref "/other-note" >}})',
        )

    def test_link_with_anchor(self):
        self.assertEqual(
            self._body("[[Other Note#Setup Steps]]"),
            '[Other Note#Setup Steps]({{< ref "/other-note#setup-steps" >}})',
        )

    def test_link_to_nested_note(self):
        self.assertEqual(
            self._body("[[folder/Deep Note.md|deep]]"),
            '[deep]({{< ref "/deep-note" >}})',
        )

    def test_empty_link_left_with_warning(self):
        result = _converter().convert("a [[]] b", "a.md")
        self.assertTrue(result.content.endswith("a [[]] b"))
        self.assertEqual(result.warnings, ["Empty wiki link left unconverted"])

    def test_embed_copy_mode(self):
        self.assertEqual(
            self._body("![[diagram.png|300]]"),
            "![diagram.png](/assets/diagram.png)",
        )

    def test_embed_reference_mode(self):
        self.assertEqual(
            self._body("![[My Image.PNG]]", image_handling="reference"),
            '![My Image.PNG]({{< ref "/my-image.png" >}})',
        )

    def test_fenced_code_untouched(self):
        text = "```markdown\n[[Not A Link]]\n![[nope.png]]\n```\n[[Real]]"
        body = self._body(text)
        self.assertIn("```markdown\n[[Not A Link]]\n![[nope.png]]\n```", body)
        self.assertIn('[Real]({{< ref "/real" >}})', body)

    def test_inline_code_untouched(self):
        self.assertEqual(
            self._body("Type `[[link]]` for [[Link]]"),
            'Type `[[link]]` for [Link]({{< ref "/link" >}})',
        )

    def test_unconvertible_identity_raises(self):
        with self.assertRaises(ConversionError):
            _converter().convert("body", "!!!.md")


if __name__ == "__main__":
    unittest.main()
