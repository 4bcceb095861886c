import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from bookledger.core.config import Settings
from bookledger.core.exceptions import StoreWriteError, ValidationError
from bookledger.services import receipts


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestValidation:

    @pytest.mark.parametrize("content_type", ["image/jpeg", "image/png", "application/pdf", "IMAGE/WEBP"])
    def test_accepts_images_and_pdf(self, content_type):
        receipts.validate_receipt(content_type, 1024, max_size_mb=5)

    @pytest.mark.parametrize("content_type", ["text/plain", "application/zip", None])
    def test_rejects_other_types(self, content_type):
        with pytest.raises(ValidationError, match="File type not supported"):
            receipts.validate_receipt(content_type, 10, max_size_mb=5)

    def test_size_limit_is_inclusive(self):
        receipts.validate_receipt("application/pdf", 5 * 1024 * 1024, max_size_mb=5)
        with pytest.raises(ValidationError, match="Maximum size is 5MB"):
            receipts.validate_receipt("application/pdf", 5 * 1024 * 1024 + 1, max_size_mb=5)

    @pytest.mark.parametrize(
        ("size", "expected"),
        [(0, "0 Bytes"), (512, "512 Bytes"), (1536, "1.5 KB"), (5 * 1024 * 1024, "5 MB")],
    )
    def test_format_file_size(self, size, expected):
        assert receipts.format_file_size(size) == expected


class TestPaths:

    moment = datetime(2025, 3, 9, 14, 5, 30, tzinfo=timezone.utc)

    def test_expense_path_groups_by_month(self):
        path = receipts.expense_receipt_path(7, "Scan.PDF", "Office Supplies", "12.50", now=self.moment)
        assert path == "7/2025/03/2025-03-09T14-05-30-00-00_office_supplies_12.50.pdf"

    def test_donation_path_uses_epoch_millis(self):
        path = receipts.donation_receipt_path(7, "receipt.png", " Red  Cross ", "25", now=self.moment)
        assert path == "7/1741529130000_Red_Cross_25.png"

    def test_missing_extension(self):
        assert receipts.file_extension("receipt") == "bin"


class TestUpload:

    def test_upload_posts_object_and_returns_public_url(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["type"] = request.headers["Content-Type"]
            seen["body"] = request.content
            return httpx.Response(200, json={"Key": "receipts/7/a.pdf"})

        async def run():
            async with mock_client(handler) as client:
                return await receipts.upload_receipt("receipts", "7/a.pdf", b"%PDF", "application/pdf", client=client)

        url = asyncio.run(run())
        assert url == "https://storage.test/storage/v1/object/public/receipts/7/a.pdf"
        assert seen == {
            "method": "POST",
            "url": "https://storage.test/storage/v1/object/receipts/7/a.pdf",
            "auth": "Bearer service-key",
            "type": "application/pdf",
            "body": b"%PDF",
        }

    def test_rejected_upload_raises_store_write_error(self):
        async def run():
            async with mock_client(lambda request: httpx.Response(409, json={"error": "Duplicate"})) as client:
                await receipts.upload_receipt("receipts", "7/a.pdf", b"x", "image/png", client=client)

        with pytest.raises(StoreWriteError, match="Receipt upload failed"):
            asyncio.run(run())

    def test_network_failure_raises_store_write_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def run():
            async with mock_client(handler) as client:
                await receipts.upload_receipt("receipts", "7/a.pdf", b"x", "image/png", client=client)

        with pytest.raises(StoreWriteError):
            asyncio.run(run())

    def test_delete_failure_raises_store_write_error(self):
        async def run():
            async with mock_client(lambda request: httpx.Response(500)) as client:
                await receipts.delete_receipt("receipts", "7/a.pdf", client=client)

        with pytest.raises(StoreWriteError, match="Receipt delete failed"):
            asyncio.run(run())

    def test_unconfigured_storage(self, monkeypatch):
        monkeypatch.setattr(receipts, "get_settings", lambda: Settings(storage_url=""))
        with pytest.raises(StoreWriteError, match="not configured"):
            asyncio.run(receipts.upload_receipt("receipts", "7/a.pdf", b"x", "image/png"))
