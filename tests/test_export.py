"""Proposal export to markdown and JSON, and import validation."""

from __future__ import annotations

import json
from datetime import date

import pytest

from qcisync.content.frontmatter import ProposalContent, parse_frontmatter
from qcisync.errors import MalformedError
from qcisync.registry.export import (
    export_filename,
    format_json,
    format_markdown,
    load_import,
    validate_import,
)
from qcisync.registry.models import Proposal, ProposalVersionRecord, status_id

EXPORTED_AT = 1_735_689_600  # 2025-01-01T00:00:00Z

PROPOSAL = Proposal(
    number=212,
    title="Add Base collateral",
    chain="Base",
    author="0x1111111111111111111111111111111111111111",
    implementor="",
    status="Ready for Snapshot",
    status_id=status_id("Ready for Snapshot"),
    content_hash="0x" + "cd" * 32,
    storage_address="ipfs://bafkreiexample",
    created_at=1_700_000_000,
    last_updated=1_735_689_600,
    version=2,
    external_vote_id=None,
    implementation_date=None,
    frontmatter={"created": "2024-11-14"},
    body="## Summary\n\nAdd it.",
)

VERSIONS = [
    ProposalVersionRecord("0x" + "aa" * 32, "ipfs://bafkreifirst", 1_700_000_000, "Initial version"),
    ProposalVersionRecord("0x" + "cd" * 32, "ipfs://bafkreiexample", 1_735_689_600, "Fix typo"),
]


# ============ Markdown ============


def test_markdown_frontmatter_fills_placeholders():
    markdown = format_markdown(PROPOSAL, exported_at=EXPORTED_AT)
    document = parse_frontmatter(markdown)

    assert document.frontmatter["qci"] == "212"
    assert document.frontmatter["implementor"] == "None"
    assert document.frontmatter["implementation-date"] == "None"
    assert document.frontmatter["proposal"] == "None"
    assert document.frontmatter["created"] == "2024-11-14"
    assert document.frontmatter["version"] == "2"
    assert document.frontmatter["ipfs"] == "ipfs://bafkreiexample"
    assert "<!-- Exported from QCI Registry at 2025-01-01T00:00:00.000Z -->" in markdown
    assert "<!-- Version 2 -->" in markdown


def test_markdown_without_metadata():
    markdown = format_markdown(PROPOSAL, include_metadata=False)
    assert "version:" not in markdown
    assert "<!--" not in markdown
    assert markdown.endswith("---\n## Summary\n\nAdd it.")


def test_exported_markdown_can_be_republished():
    content = ProposalContent.from_document(parse_frontmatter(format_markdown(PROPOSAL)))
    assert content.qci == 212
    assert content.status == "Ready for Snapshot"
    assert content.content.startswith("## Summary")


# ============ JSON ============


def test_json_export_carries_history():
    document = format_json(PROPOSAL, VERSIONS, "0xRegistry", exported_at=EXPORTED_AT)

    assert document["metadata"] == {
        "exportedAt": "2025-01-01T00:00:00.000Z",
        "contractAddress": "0xRegistry",
        "chain": "Base",
        "exportVersion": "1.0",
    }
    assert document["qci"]["snapshotProposalId"] == "None"
    assert document["qci"]["lastUpdated"] == "2025-01-01T00:00:00.000Z"
    assert document["qci"]["statusId"] == status_id("Ready for Snapshot")
    assert [v["version"] for v in document["versions"]] == [1, 2]
    assert document["versions"][0]["changeNote"] == "Initial version"
    assert document["versions"][1]["timestamp"] == "2025-01-01T00:00:00.000Z"


def test_json_export_without_history_omits_versions():
    assert "versions" not in format_json(PROPOSAL)


# ============ Import ============


def test_export_validates_and_imports():
    document = format_json(PROPOSAL, VERSIONS)
    assert validate_import(document) == {}

    content = load_import(json.dumps(document))
    assert content.qci == 212
    assert content.title == "Add Base collateral"
    assert content.implementor == "None"
    assert content.created == "2024-11-14"


def test_import_defaults_status_to_draft():
    content = load_import(json.dumps({"qci": {"title": "T", "chain": "Base", "content": "Body"}}))
    assert content.status == "Draft"
    assert content.qci == 0


@pytest.mark.parametrize(
    "data,path",
    [
        ([], "<root>"),
        ({}, "<root>"),
        ({"qci": {"chain": "Base", "content": "x"}}, "qci"),
        ({"qci": {"title": "T", "chain": "Polygon", "content": "x"}}, "qci/chain"),
        ({"qci": {"title": "T", "chain": "Base", "content": "x", "status": "Implemented"}}, "qci/status"),
        ({"qci": {"title": "T", "chain": "Base", "content": ""}}, "qci/content"),
    ],
)
def test_validate_import_names_the_field(data, path):
    assert path in validate_import(data)


def test_missing_fields_are_reported_together():
    errors = validate_import({"qci": {"chain": "Base"}})
    assert "'title' is a required property" in errors["qci"]
    assert "'content' is a required property" in errors["qci"]


def test_load_import_rejects_bad_documents():
    with pytest.raises(MalformedError, match="Invalid import JSON"):
        load_import("{not json")
    with pytest.raises(MalformedError) as excinfo:
        load_import(json.dumps({"qci": {"title": "T", "chain": "Solana", "content": "x"}}))
    assert list(excinfo.value.errors) == ["qci/chain"]


# ============ Filenames ============


@pytest.mark.parametrize(
    "fmt,version,expected",
    [
        ("md", 1, "QCI-212-2025-03-01.md"),
        ("md", 3, "QCI-212-v3-2025-03-01.md"),
        ("json", None, "QCI-212-export-2025-03-01.json"),
        ("json", 2, "QCI-212-v2-export-2025-03-01.json"),
    ],
)
def test_export_filename(fmt, version, expected):
    assert export_filename(212, fmt, version, today=date(2025, 3, 1)) == expected
