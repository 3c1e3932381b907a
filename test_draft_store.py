"""Tests for the draft merge policy."""

import pytest

from aiva.models.claim_form import Attachment
from aiva.orchestration.draft_store import DraftStore


@pytest.fixture
def draft():
    return DraftStore()


def _file(name="passport.pdf", data=b"%PDF-1.4 test"):
    return Attachment(filename=name, content_type="application/pdf", data=data)


def test_merge_adopts_new_values(draft):
    changed = draft.merge({"fullName": "Jane Tan", "email": "jane@example.com"})

    assert changed == ["fullName", "email"]
    assert draft.get("fullName") == "Jane Tan"


def test_merge_ignores_empty_and_unchanged_values(draft):
    draft.merge({"fullName": "Jane Tan"})

    assert draft.merge({"fullName": ""}) == []
    assert draft.merge({"fullName": None}) == []
    assert draft.merge({"fullName": "Jane Tan"}) == []
    assert draft.get("fullName") == "Jane Tan"


def test_merge_replaces_a_different_value(draft):
    draft.merge({"phone": "0123456789"})

    assert draft.merge({"phone": "0198765432"}) == ["phone"]
    assert draft.get("phone") == "0198765432"


def test_merge_ignores_unknown_keys(draft):
    assert draft.merge({"favouriteColour": "blue"}) == []
    assert draft.is_empty


def test_claim_types_take_the_candidate_selection(draft):
    draft.merge({"claimTypes": "Medical Expenses"})

    assert draft.merge({"claimTypes": "Travel Delay"}) == ["claimTypes"]
    assert draft.get("claimTypes") == "Travel Delay"
    # Loose match on the option already selected
    assert draft.merge({"claimTypes": "travel"}) == []


def test_unlisted_claim_type_goes_to_other_detail(draft):
    draft.merge({"claimTypes": "Medical Expenses"})

    assert draft.merge({"claimTypes": "Lost passport"}) == ["claimTypes", "otherClaimDetail"]
    assert draft.get("claimTypes") == "Other"
    assert draft.get("otherClaimDetail") == "Lost passport"


def test_override_replaces_claim_types(draft):
    draft.merge({"claimTypes": "Medical Expenses, Travel Delay"})

    assert draft.override("claim type", "Baggage Loss") == ["claimTypes"]
    assert draft.get("claimTypes") == "Baggage Loss"


def test_override_resolves_aliases(draft):
    assert draft.override("policy", "P-100") == ["policyNo"]
    assert draft.override("mobile", "0123456789") == ["phone"]
    assert draft.override("Policy No.", "P-100") == []


def test_override_rejects_unknown_and_attachment_fields(draft):
    with pytest.raises(ValueError):
        draft.override("shoe size", "42")
    with pytest.raises(ValueError):
        draft.override("passport copy", "scan.pdf")


def test_declaration_is_boolean(draft):
    assert draft.merge({"declaration": "maybe"}) == []
    assert draft.merge({"declaration": "yes"}) == ["declaration"]
    assert draft.get("declaration") is True


def test_unchecked_declaration_is_not_an_answer(draft):
    assert draft.override("declaration", "no") == ["declaration"]

    assert draft.get("declaration") is False
    assert "declaration" in draft.missing_required()
    assert draft.is_empty


def test_attachments_are_append_only(draft):
    draft.attach("passportCopy", [_file("front.pdf")])
    draft.merge({"passportCopy": [_file("back.pdf")]})

    names = [a.filename for a in draft.attachments("passportCopy")]
    assert names == ["front.pdf", "back.pdf"]


def test_empty_attachments_are_skipped(draft):
    assert draft.attach("passportCopy", [_file(data=b"")]) == []


def test_attach_rejects_scalar_fields(draft):
    with pytest.raises(ValueError):
        draft.attach("fullName", [_file()])


def test_snapshot_summarizes_files(draft):
    draft.merge({"fullName": "Jane Tan"})
    draft.attach("medicalReceipts", [_file("receipt.pdf")])

    snapshot = draft.snapshot()
    assert snapshot["fullName"] == "Jane Tan"
    assert snapshot["medicalReceipts"] == [
        {"filename": "receipt.pdf", "content_type": "application/pdf", "size": 13}
    ]


def test_missing_required_and_reset(draft):
    assert "fullName" in draft.missing_required()

    draft.merge({"fullName": "Jane Tan"})
    assert "fullName" not in draft.missing_required()

    draft.reset()
    assert draft.is_empty
    assert draft.get("fullName") is None


def test_extra_aliases_from_configuration():
    draft = DraftStore(extra_aliases={"handphone": "phone", "bogus": "notAField"})

    assert draft.resolve_field("handphone") == "phone"
    assert draft.resolve_field("bogus") is None
