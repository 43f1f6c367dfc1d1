"""
Tests for local script storage and signed URLs.
"""
from urllib.parse import parse_qs, urlparse

import pytest

from conftest import contractor_headers, create_contractor
from scriptdesk.services import storage


def _split(url: str):
    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    return parsed.path, int(query["expires"][0]), query["signature"][0]


class TestUploadChecks:
    @pytest.mark.parametrize("name", ["script.pdf", "Script.DOCX", "draft.doc"])
    def test_allowed_extensions(self, name):
        storage.check_upload(name, 1024)

    def test_rejects_other_types(self):
        with pytest.raises(storage.InvalidFile):
            storage.check_upload("script.txt", 10)

    def test_rejects_large_files(self):
        with pytest.raises(storage.FileTooLarge):
            storage.check_upload("script.pdf", 10 * 1024 * 1024 + 1)

    def test_sanitize(self):
        assert storage.sanitize_filename("../My Script (v2).pdf") == "My_Script_v2_.pdf"

    def test_rejects_traversal(self):
        with pytest.raises(storage.InvalidFile):
            storage.resolve(storage.SCRIPTS_BUCKET, "../secrets")


class TestSignedUrls:
    def test_round_trip(self):
        url = storage.signed_url("scripts", "123_draft.pdf", ttl_sec=60)
        path, expires, signature = _split(url)
        assert path == "/api/files/signed/scripts/123_draft.pdf"
        assert storage.verify_signature("scripts", "123_draft.pdf", expires, signature)

    def test_expired(self):
        url = storage.signed_url("scripts", "123_draft.pdf", ttl_sec=-5)
        _, expires, signature = _split(url)
        assert not storage.verify_signature("scripts", "123_draft.pdf", expires, signature)

    def test_other_key_rejected(self):
        url = storage.signed_url("scripts", "123_draft.pdf", ttl_sec=60)
        _, expires, signature = _split(url)
        assert not storage.verify_signature("scripts", "124_draft.pdf", expires, signature)


class TestFileRoutes:
    async def test_signed_download(self, client, admin_headers):
        key = storage.upload(storage.SCRIPTS_BUCKET, "draft.pdf", b"%PDF-1.4 test")
        assert key.endswith("_draft.pdf")

        resp = await client.get(storage.signed_url(storage.SCRIPTS_BUCKET, key))
        assert resp.status_code == 200
        assert resp.content == b"%PDF-1.4 test"

        public = await client.get(storage.public_url(storage.SCRIPTS_BUCKET, key), headers=admin_headers)
        assert public.status_code == 200

    async def test_unsigned_path_requires_admin(self, client, session):
        key = storage.upload(storage.SCRIPTS_BUCKET, "draft.pdf", b"%PDF-1.4 test")
        url = storage.public_url(storage.SCRIPTS_BUCKET, key)
        anonymous = await client.get(url)
        assert anonymous.status_code == 401

        await create_contractor(session)
        reader = await client.get(url, headers=await contractor_headers(client))
        assert reader.status_code == 403

    async def test_bad_signature_is_403(self, client):
        key = storage.upload(storage.SCRIPTS_BUCKET, "draft.pdf", b"%PDF-1.4 test")
        url = storage.signed_url(storage.SCRIPTS_BUCKET, key)
        resp = await client.get(url[:-4] + "0000")
        assert resp.status_code == 403

    async def test_missing_file_is_404(self, client, admin_headers):
        resp = await client.get("/api/files/scripts/0_nothing.pdf", headers=admin_headers)
        assert resp.status_code == 404
