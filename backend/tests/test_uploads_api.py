"""
HTTP tests for the v1 API: submission, catalog listing, upload detail,
downloads, principals and health.

The app runs against the session SQLite catalog with the in-memory blob
store injected through the get_blob_store dependency.
"""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

from fastapi import UploadFile
from sqlalchemy import select, text

from partsportal.config import settings
from partsportal.core.catalog.catalog_service import catalog_service

from conftest import auth_headers, make_token


def _submit(client, principal, part_number="P-100", part_name="Bracket", files=None):
    if files is None:
        files = [
            ("files", ("a.pdf", b"a" * 10, "application/pdf")),
            ("files", ("b.step", b"b" * 20, "model/step")),
        ]
    return client.post(
        "/api/v1/uploads",
        data={"part_number": part_number, "part_name": part_name},
        files=files,
        headers=auth_headers(principal),
    )


class TestAuthentication:

    def test_missing_token(self, client):
        response = client.get("/api/v1/uploads")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_expired_token(self, client, api_vendor):
        token = make_token(api_vendor.id, expires_in=timedelta(minutes=-5))
        response = client.get("/api/v1/uploads", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"

    def test_unknown_principal(self, client):
        token = make_token(uuid.uuid4())
        response = client.get("/api/v1/uploads", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Principal not found"


class TestSubmit:

    def test_vendor_submits(self, client, api_vendor, api_blob_store):
        response = _submit(client, api_vendor)

        assert response.status_code == 201
        body = response.json()
        assert body["file_count"] == 2
        assert len(api_blob_store.objects) == 2
        assert all(key.startswith(body["upload_id"]) for key in api_blob_store.objects)

        listing = client.get("/api/v1/uploads", headers=auth_headers(api_vendor)).json()
        assert listing["total"] == 1
        row = listing["items"][0]
        assert row["id"] == body["upload_id"]
        assert row["file_count"] == 2
        assert row["status"] == "complete"
        assert row["owner_display_name"] == "Acme Parts"

    def test_manager_cannot_submit(self, client, api_manager, api_blob_store):
        response = _submit(client, api_manager)
        assert response.status_code == 403
        assert api_blob_store.objects == {}

    def test_missing_part_number(self, client, api_vendor):
        response = _submit(client, api_vendor, part_number="  ")
        assert response.status_code == 400
        assert response.json() == {"error": "Validation Error", "detail": "Part number is required"}

    def test_no_files(self, client, api_vendor):
        response = client.post(
            "/api/v1/uploads",
            data={"part_number": "P-100", "part_name": "Bracket"},
            headers=auth_headers(api_vendor),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Please select at least one file"

    def test_oversize_file_rejected_before_read(self, client, api_vendor, api_blob_store, monkeypatch):
        monkeypatch.setattr(settings, "max_file_size", 8)
        monkeypatch.setattr(UploadFile, "read", AsyncMock(side_effect=AssertionError("file body was read")))

        response = _submit(client, api_vendor, files=[("files", ("big.pdf", b"x" * 64, "application/pdf"))])

        assert response.status_code == 400
        assert "too large" in response.json()["detail"]
        assert api_blob_store.objects == {}

    def test_partial_failure_reports_kept_upload(self, client, api_vendor, api_blob_store):
        api_blob_store.fail_writes_for = {"b.step"}

        response = _submit(client, api_vendor)

        assert response.status_code == 502
        body = response.json()
        assert body["expected"] == 2
        assert body["persisted"] == 1
        assert len(body["failures"]) == 1

        detail = client.get(f"/api/v1/uploads/{body['upload_id']}", headers=auth_headers(api_vendor))
        assert detail.status_code == 200
        assert detail.json()["status"] == "incomplete"
        assert [f["file_name"] for f in detail.json()["files"]] == ["a.pdf"]


class TestListing:

    def test_manager_filters(self, client, api_vendor, api_other_vendor, api_manager):
        _submit(client, api_vendor, part_number="ZX-100")
        _submit(client, api_other_vendor, part_number="ZX-101")
        headers = auth_headers(api_manager)

        own = client.get(
            "/api/v1/uploads", params={"owner_id": str(api_vendor.id)}, headers=headers
        ).json()
        assert own["total"] == 1
        assert own["items"][0]["part_number"] == "ZX-100"

        by_part = client.get(
            "/api/v1/uploads",
            params={"owner_id": str(api_other_vendor.id), "part_number": "zx-1"},
            headers=headers,
        ).json()
        assert [row["part_number"] for row in by_part["items"]] == ["ZX-101"]

    def test_vendor_owner_filter_ignored(self, client, api_vendor, api_other_vendor):
        _submit(client, api_other_vendor)

        response = client.get(
            "/api/v1/uploads",
            params={"owner_id": str(api_other_vendor.id)},
            headers=auth_headers(api_vendor),
        )
        assert response.status_code == 200
        assert response.json()["items"] == []

    def test_page_size_reported(self, client, api_vendor):
        body = client.get("/api/v1/uploads", params={"limit": 5}, headers=auth_headers(api_vendor)).json()
        assert body["limit"] == 5
        assert body["offset"] == 0

    def test_limit_above_cap_rejected(self, client, api_vendor):
        response = client.get("/api/v1/uploads", params={"limit": 100000}, headers=auth_headers(api_vendor))
        assert response.status_code == 422

    def test_unknown_time_zone(self, client, api_vendor):
        response = client.get(
            "/api/v1/uploads",
            params={"date_from": "2024-01-01", "tz": "Nowhere/Special"},
            headers=auth_headers(api_vendor),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid Filter"

    def test_catalog_unavailable(self, client, api_vendor, monkeypatch):
        monkeypatch.setattr(
            catalog_service, "_summary_query", lambda: select(text("1")).select_from(text("missing_uploads"))
        )

        response = client.get("/api/v1/uploads", headers=auth_headers(api_vendor))
        assert response.status_code == 503
        assert response.json()["error"] == "Storage Unavailable"


class TestUploadDetail:

    def test_other_vendor_gets_not_found(self, client, api_vendor, api_other_vendor, api_manager):
        upload_id = _submit(client, api_vendor).json()["upload_id"]

        assert client.get(f"/api/v1/uploads/{upload_id}", headers=auth_headers(api_vendor)).status_code == 200
        assert client.get(f"/api/v1/uploads/{upload_id}", headers=auth_headers(api_manager)).status_code == 200
        response = client.get(f"/api/v1/uploads/{upload_id}", headers=auth_headers(api_other_vendor))
        assert response.status_code == 404

    def test_unknown_upload(self, client, api_manager):
        response = client.get(f"/api/v1/uploads/{uuid.uuid4()}", headers=auth_headers(api_manager))
        assert response.status_code == 404


class TestDownload:

    def _drawing(self, client, vendor):
        upload_id = _submit(
            client,
            vendor,
            files=[("files", ("drawing v1.pdf", b"%" * 1024, "application/pdf"))],
        ).json()["upload_id"]
        detail = client.get(f"/api/v1/uploads/{upload_id}", headers=auth_headers(vendor)).json()
        return detail["files"][0]["id"]

    def test_download_keeps_name(self, client, api_vendor, api_manager):
        file_id = self._drawing(client, api_vendor)

        response = client.get(f"/api/v1/files/{file_id}/download", headers=auth_headers(api_manager))

        assert response.status_code == 200
        assert response.content == b"%" * 1024
        assert response.headers["content-type"] == "application/pdf"
        disposition = response.headers["content-disposition"]
        assert disposition.startswith("attachment;")
        assert 'filename="drawing v1.pdf"' in disposition
        assert "filename*=UTF-8''drawing%20v1.pdf" in disposition

    def test_other_vendor_gets_not_found(self, client, api_vendor, api_other_vendor):
        file_id = self._drawing(client, api_vendor)
        response = client.get(f"/api/v1/files/{file_id}/download", headers=auth_headers(api_other_vendor))
        assert response.status_code == 404

    def test_storage_unavailable(self, client, api_vendor, api_blob_store):
        file_id = self._drawing(client, api_vendor)
        api_blob_store.fail_reads = True

        response = client.get(f"/api/v1/files/{file_id}/download", headers=auth_headers(api_vendor))
        assert response.status_code == 503
        assert response.json()["error"] == "Storage Unavailable"


class TestPrincipals:

    def test_whoami_vendor(self, client, api_vendor):
        body = client.get("/api/v1/principals/me", headers=auth_headers(api_vendor)).json()
        assert body["id"] == str(api_vendor.id)
        assert body["role"] == "vendor"
        assert body["organization_name"] == "Acme Parts"
        assert body["home"] == "/vendor/upload"

    def test_whoami_manager(self, client, api_manager):
        body = client.get("/api/v1/principals/me", headers=auth_headers(api_manager)).json()
        assert body["home"] == "/manager/dashboard"

    def test_vendor_list_for_manager(self, client, api_vendor, api_manager):
        response = client.get("/api/v1/principals/vendors", headers=auth_headers(api_manager))
        assert response.status_code == 200
        assert str(api_vendor.id) in {v["id"] for v in response.json()}

    def test_vendor_list_forbidden_for_vendor(self, client, api_vendor):
        response = client.get("/api/v1/principals/vendors", headers=auth_headers(api_vendor))
        assert response.status_code == 403


class TestSystem:

    def test_health(self, client):
        body = client.get("/api/v1/system/health").json()
        assert body["status"] == "healthy"
        assert body["database"]["status"] == "healthy"
        assert body["object_storage"]["status"] == "disabled"
