"""Tests for payload building and the local claim record store."""

import json

from aiva.models.claim_form import Attachment
from aiva.storage.claim_store import ClaimRecordStore, safe_filename
from aiva.storage.submission import MultipartPayload, build_payload


def _file(name, data=b"content"):
    return Attachment(filename=name, content_type="application/pdf", data=data)


def test_build_payload_skips_empty_values():
    payload = build_payload({
        "fullName": "Jane Tan",
        "email": "",
        "claimTypes": "Medical Expenses, Travel Delay",
        "declaration": True,
        "passportCopy": [_file("front.pdf"), _file("empty.pdf", b"")],
    })

    assert payload.fields == {
        "fullName": "Jane Tan",
        "claimTypes": "Medical Expenses, Travel Delay",
        "declaration": "true",
    }
    assert [a.filename for a in payload.files_for("passportCopy")] == ["front.pdf"]


def test_unchecked_declaration_is_left_out():
    assert "declaration" not in build_payload({"declaration": False}).fields


def test_safe_filename():
    name = safe_filename("my receipt (1).pdf")

    assert name.endswith("_my_receipt__1_.pdf")
    assert " " not in name


def test_submit_writes_record_and_objects(store):
    payload = MultipartPayload(
        fields={
            "fullName": "Jane Tan",
            "incidentDateTime": "2025-09-12 14:30",
            "declaration": "true",
        },
        files=[
            ("passportCopy", _file("front.pdf")),
            ("passportCopy", _file("back.pdf")),
            ("policeReport", _file("report-1.pdf")),
            ("policeReport", _file("report-2.pdf")),
        ],
    )

    result = store.submit(payload)

    assert result["ok"] is True
    record = store.get_record(result["id"])
    assert record["full_name"] == "Jane Tan"
    assert record["incident_datetime"] == "2025-09-12 14:30"
    assert record["email"] is None
    assert record["declaration"] is True
    assert len(record["passport_copy_paths"]) == 2
    assert record["medical_receipts_paths"] == []
    # Single-path columns keep the last upload
    assert record["police_report_path"].endswith("report-2.pdf")
    assert record["police_report_path"].startswith(f"{result['id']}/policeReport/")

    saved = store.uploads_dir / record["passport_copy_paths"][0]
    assert saved.read_bytes() == b"content"


def test_list_records_newest_first(store):
    first = store.submit(MultipartPayload(fields={"fullName": "First"}))["id"]
    second = store.submit(MultipartPayload(fields={"fullName": "Second"}))["id"]

    # Pin creation times so ordering does not depend on clock resolution
    for record_id, created_at in ((first, "2025-09-01T00:00:00+00:00"), (second, "2025-09-02T00:00:00+00:00")):
        path = store.records_dir / f"{record_id}.json"
        record = json.loads(path.read_text(encoding="utf-8"))
        record["created_at"] = created_at
        path.write_text(json.dumps(record), encoding="utf-8")

    rows = store.list_records()
    assert [r["full_name"] for r in rows] == ["Second", "First"]
    assert len(store.list_records(limit=1)) == 1


def test_list_skips_unreadable_records(store):
    store.submit(MultipartPayload(fields={"fullName": "Jane Tan"}))
    (store.records_dir / "broken.json").write_text("{not json", encoding="utf-8")

    rows = store.list_records()

    assert [r["full_name"] for r in rows] == ["Jane Tan"]


def test_store_creates_directories(tmp_path):
    store = ClaimRecordStore(uploads_dir=str(tmp_path / "a" / "uploads"), records_dir=str(tmp_path / "b"))

    assert store.uploads_dir.is_dir()
    assert store.records_dir.is_dir()


def test_failed_record_write_removes_stored_files(store, monkeypatch):
    def broken_dump(*args, **kwargs):
        raise TypeError("record is not serializable")

    monkeypatch.setattr("aiva.storage.claim_store.json.dump", broken_dump)
    payload = MultipartPayload(
        fields={"fullName": "Jane Tan"},
        files=[("passportCopy", _file("front.pdf"))],
    )

    result = store.submit(payload)

    assert result == {"error": "Failed to store claim: record is not serializable"}
    assert list(store.uploads_dir.iterdir()) == []
    assert list(store.records_dir.iterdir()) == []
