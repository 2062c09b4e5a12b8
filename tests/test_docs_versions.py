import re

import pytest

from ubispec.docs import schema_reference, to_anchor
from ubispec.errors import IssueCode, UnknownSpecKindError
from ubispec.schema.document import parse_document
from ubispec.schema.versions import SpecKind, detect_kind, known_formats, parse_format, spec_index


class TestFormats:

    def test_parse_format(self):
        assert parse_format("process/v1.0") == ("process", 1, 0)
        with pytest.raises(ValueError):
            parse_format("process-1.0")

    def test_detect_kind(self, raw):
        assert detect_kind(raw["order.yaml"]) == SpecKind.LIFECYCLE
        assert detect_kind(raw["fulfillment.yaml"]) == SpecKind.PROCESS
        assert detect_kind(raw["shop.yaml"]) == SpecKind.SYSTEM
        assert detect_kind({"ubispec": "workflow/v1.0"}) is None
        assert detect_kind(["not", "a", "mapping"]) is None

    def test_known_formats(self):
        assert known_formats() == [
            "lifecycle/v1.0",
            "lifecycle/v1.1",
            "process/v1.0",
            "process/v1.1",
            "system/v1.0",
        ]

    def test_index(self):
        """IX-01: the index lists every kind with its latest stable version."""
        specs = spec_index()["specs"]
        assert list(specs) == ["lifecycle", "process", "system"]
        assert specs["lifecycle"]["latest"] == "v1.0"
        assert specs["lifecycle"]["export"] == "LifecycleSpec"
        assert specs["process"]["versions"]["v1.1"] == {"format": "process/v1.1", "status": "unstable"}


class TestParseDocument:

    def test_dispatch(self, raw):
        result = parse_document(raw["shop.yaml"], "shop.yaml")
        assert result.kind == SpecKind.SYSTEM
        assert result.ok

    @pytest.mark.parametrize("document, code", [
        ({"decider": "Order"}, IssueCode.MISSING_FIELD),
        ({"ubispec": "lifecycle-1.0"}, IssueCode.PATTERN_MISMATCH),
        ({"ubispec": "workflow/v1.0"}, IssueCode.UNSUPPORTED_VERSION),
        (["ubispec"], IssueCode.TYPE_MISMATCH),
    ])
    def test_unknown_kind(self, document, code):
        """IX-02: a document of unknown kind is reported, never guessed."""
        result = parse_document(document, "mystery.yaml")
        assert result.kind is None
        assert result.spec is None
        assert result.codes() == [code.value]
        assert result.issues[0].document == "mystery.yaml"


class TestSchemaReference:

    def test_lifecycle_page(self):
        """DOC-01: one field table per object, generated from field descriptions."""
        page = schema_reference("lifecycle")
        assert page.startswith("# Lifecycle UbiSpec v1.0 Schema Reference")
        assert "## LifecycleSpec" in page
        assert "## Decision" in page
        assert "| `ubispec` | `string` | **Required.** Format identifier and version" in page
        assert "| `lifecycle` | \\[[Decision](#decision)\\] |" in page
        assert "| `common` | Map\\<`string`, `string`\\> | Reusable predicates" in page

    def test_process_page_lists_triggers(self):
        page = schema_reference(SpecKind.PROCESS)
        for title in ("ProcessSpec", "Reaction", "ScalarTrigger", "AnyTrigger", "AllTrigger"):
            assert f"## {title}" in page
        # parse-time fields stay out of the reference
        assert "| `kind` |" not in page

    def test_system_page(self):
        page = schema_reference("system")
        assert "## Flow" in page
        assert "| `from` |" in page

    @pytest.mark.parametrize("kind", list(SpecKind))
    def test_every_link_has_a_section(self, kind):
        """DOC-02: each object type a field links to has its own table on the page."""
        page = schema_reference(kind)
        anchors = {to_anchor(line[3:]) for line in page.splitlines() if line.startswith("## ")}
        links = set(re.findall(r"\]\(#([a-z0-9-]+)\)", page))
        assert links
        assert links <= anchors

    def test_then_entries_are_documented(self):
        assert "## UnconditionalEvent" in schema_reference("lifecycle")
        assert "## ConditionalEvent" in schema_reference("lifecycle")
        assert "## UnconditionalCommand" in schema_reference("process")
        assert "## ConditionalCommand" in schema_reference("process")

    def test_unknown_kind(self):
        with pytest.raises(UnknownSpecKindError):
            schema_reference("workflow")
