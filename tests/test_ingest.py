"""
Tests for turning fetched items into contacts.
"""

import pytest

from carddav_sync.api.dav_xml import DavDocument
from carddav_sync.sync.contact import CONTACT_MAX_REFS, EXTERNAL_CARDDAV_SOURCE, Contact
from carddav_sync.sync.ingest import (
    ContactIngester,
    IngestResult,
    SkipReason,
    contact_base_id,
    contact_id,
)


class TestIds:
    """Tests for contact id helpers."""

    def test_base_id_prefers_uid(self):
        assert contact_base_id("work", "u1", "/a.vcf") == "ext-work-u1"

    def test_base_id_falls_back_to_href(self):
        assert contact_base_id("work", "", "/a.vcf") == "ext-work-/a.vcf"

    def test_contact_id_index_zero_is_base(self):
        assert contact_id("ext-work-u1", 0) == "ext-work-u1"

    def test_contact_id_with_index(self):
        assert contact_id("ext-work-u1", 2) == "ext-work-u1-2"


class TestIngestResult:
    def test_skipped(self):
        assert IngestResult(skip_reason=SkipReason.EMPTY).skipped
        assert not IngestResult().skipped


class TestContactIngester:
    """Tests for ContactIngester.ingest."""

    @pytest.fixture
    def existing(self):
        return {}

    @pytest.fixture
    def ingester(self, existing):
        return ContactIngester("work", "acct", "external-work", existing.get)

    @pytest.fixture
    def item(self, multistatus):
        def _item(href="/book/a.vcf", etag='"e1"', vcard=""):
            doc = DavDocument(multistatus({"href": href, "etag": etag, "vcard": vcard}))
            return next(doc.responses())

        return _item

    def test_single_email(self, ingester, item, vcard):
        """Test a card with one email becomes one contact."""
        text = vcard(uid="u1", fn="Ann Lee", emails=["ann@x.org"])
        result = ingester.ingest(item(vcard=text))

        assert not result.skipped
        assert result.created == 1
        assert len(result.contacts) == 1
        contact = result.contacts[0]
        assert contact.id == "ext-work-u1"
        assert contact.account_id == "acct"
        assert contact.book_id == "external-work"
        assert contact.email == "ann@x.org"
        assert contact.name == "Ann Lee"
        assert contact.etag == '"e1"'
        assert contact.source == EXTERNAL_CARDDAV_SOURCE
        assert contact.refs == CONTACT_MAX_REFS
        assert contact.hidden is False
        assert contact.info == {"vcf": text, "href": "/book/a.vcf"}

    def test_fan_out_per_email(self, ingester, item, vcard):
        """Test that each email gets its own contact with an indexed id."""
        text = vcard(uid="u1", fn="Ann", emails=["a@x.org", "b@x.org", "c@x.org"])
        result = ingester.ingest(item(vcard=text))

        assert [c.id for c in result.contacts] == [
            "ext-work-u1",
            "ext-work-u1-1",
            "ext-work-u1-2",
        ]
        assert [c.email for c in result.contacts] == ["a@x.org", "b@x.org", "c@x.org"]
        assert {c.etag for c in result.contacts} == {'"e1"'}
        assert {c.name for c in result.contacts} == {"Ann"}

    def test_fan_out_rows_do_not_share_info(self, ingester, item, vcard):
        """Test each row gets its own info dict."""
        text = vcard(uid="u1", fn="Ann", emails=["a@x.org", "b@x.org"])
        first, second = ingester.ingest(item(vcard=text)).contacts

        assert first.info == second.info
        assert first.info is not second.info

    def test_uid_missing_uses_href(self, ingester, item, vcard):
        text = vcard(fn="Ann", emails=["a@x.org"])
        result = ingester.ingest(item(href="/book/x.vcf", vcard=text))
        assert result.contacts[0].id == "ext-work-/book/x.vcf"

    def test_name_falls_back_to_structured_name(self, ingester, item, vcard):
        text = vcard(uid="u1", n="Lee;Ann;;;", emails=["a@x.org"])
        result = ingester.ingest(item(vcard=text))
        assert result.contacts[0].name == "Ann Lee"

    def test_photo_in_info(self, ingester, item, vcard):
        text = vcard(
            uid="u1",
            emails=["a@x.org"],
            extra=["PHOTO;VALUE=URI:https://img.example/a.jpg"],
        )
        result = ingester.ingest(item(vcard=text))
        assert result.contacts[0].info["photo"] == "https://img.example/a.jpg"

    def test_empty_body_is_skipped(self, ingester, item):
        result = ingester.ingest(item(vcard=""))

        assert result.skip_reason is SkipReason.EMPTY
        assert result.contacts == []

    def test_whitespace_body_is_skipped(self, ingester, item):
        result = ingester.ingest(item(vcard="  \n "))
        assert result.skip_reason is SkipReason.EMPTY

    def test_invalid_body_is_skipped(self, ingester, item):
        result = ingester.ingest(item(vcard="garbage"))

        assert result.skip_reason is SkipReason.INVALID
        assert result.contacts == []

    def test_card_without_email_is_skipped(self, ingester, item, vcard):
        result = ingester.ingest(item(vcard=vcard(uid="u1", fn="No Mail")))

        assert result.skip_reason is SkipReason.NO_EMAIL
        assert result.contacts == []

    def test_group_card_is_hidden(self, ingester, item, vcard):
        """Test that rows from a group card are hidden."""
        text = vcard(uid="g1", fn="Team", emails=["team@x.org"], kind="group")
        result = ingester.ingest(item(vcard=text))

        assert result.is_group
        assert result.contacts[0].hidden is True

    def test_existing_contact_is_updated(self, existing, ingester, item, vcard):
        """Test that an existing row is reused instead of created."""
        existing["ext-work-u1"] = Contact(
            id="ext-work-u1",
            account_id="acct",
            email="old@x.org",
            name="Old",
            etag='"e0"',
            hidden=True,
            refs=7,
        )
        text = vcard(uid="u1", fn="New", emails=["new@x.org"])

        result = ingester.ingest(item(etag='"e2"', vcard=text))

        assert result.created == 0
        contact = result.contacts[0]
        assert contact is existing["ext-work-u1"]
        assert contact.email == "new@x.org"
        assert contact.name == "New"
        assert contact.etag == '"e2"'
        assert contact.hidden is False
        assert contact.refs == 7
