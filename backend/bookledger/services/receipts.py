from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

import httpx

from bookledger.core.config import get_settings
from bookledger.core.exceptions import StoreWriteError, ValidationError


logger = logging.getLogger(__name__)

ALLOWED_RECEIPT_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "application/pdf",
    }
)

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


def validate_receipt(content_type: str | None, size: int, max_size_mb: int | None = None) -> None:
    max_mb = max_size_mb if max_size_mb is not None else get_settings().receipt_max_size_mb
    if (content_type or "").lower() not in ALLOWED_RECEIPT_TYPES:
        raise ValidationError("File type not supported. Please upload JPG, PNG, or PDF files.")
    if size > max_mb * 1024 * 1024:
        raise ValidationError(f"File is too large. Maximum size is {max_mb}MB.")


def format_file_size(num_bytes: int) -> str:
    if num_bytes <= 0:
        return "0 Bytes"
    value = float(num_bytes)
    exponent = 0
    while value >= 1024 and exponent < len(_SIZE_UNITS) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[exponent]}"


def file_extension(filename: str | None) -> str:
    if not filename or "." not in filename:
        return "bin"
    return filename.rsplit(".", 1)[1].lower()


def expense_receipt_path(
    user_id: int,
    filename: str | None,
    category: str,
    amount: str,
    now: datetime | None = None,
) -> str:
    """``{user}/{YYYY}/{MM}/{timestamp}_{category}_{amount}.{ext}``"""
    moment = now or datetime.now(timezone.utc)
    stamp = re.sub(r"[:.+]", "-", moment.isoformat())
    safe_category = re.sub(r"[^a-z0-9]", "_", category, flags=re.IGNORECASE).lower()
    name = f"{stamp}_{safe_category}_{amount}.{file_extension(filename)}"
    return f"{user_id}/{moment.year}/{moment.month:02d}/{name}"


def donation_receipt_path(
    user_id: int,
    filename: str | None,
    charity: str,
    amount: str,
    now: datetime | None = None,
) -> str:
    moment = now or datetime.now(timezone.utc)
    epoch_ms = int(moment.timestamp() * 1000)
    safe_charity = re.sub(r"\s+", "_", charity.strip())
    return f"{user_id}/{epoch_ms}_{safe_charity}_{amount}.{file_extension(filename)}"


def public_url(bucket: str, path: str) -> str:
    base = get_settings().storage_url.rstrip("/")
    return f"{base}/storage/v1/object/public/{bucket}/{path}"


def _object_url(bucket: str, path: str) -> str:
    settings = get_settings()
    if not settings.storage_url:
        raise StoreWriteError("Receipt storage is not configured.")
    return f"{settings.storage_url.rstrip('/')}/storage/v1/object/{bucket}/{path}"


def _auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {get_settings().storage_api_key}"}


async def upload_receipt(
    bucket: str,
    path: str,
    content: bytes,
    content_type: str,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Store one receipt object and return its public URL."""
    url = _object_url(bucket, path)
    headers = {
        **_auth_headers(),
        "Content-Type": content_type,
        "Cache-Control": "3600",
        "x-upsert": "false",
    }
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=get_settings().storage_timeout_seconds)
    try:
        response = await http.post(url, content=content, headers=headers)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("Receipt upload failed", extra={"bucket": bucket, "path": path})
        raise StoreWriteError(f"Receipt upload failed: {exc}") from exc
    finally:
        if owns_client:
            await http.aclose()

    logger.info("Receipt uploaded", extra={"bucket": bucket, "path": path, "size": len(content)})
    return public_url(bucket, path)


async def delete_receipt(bucket: str, path: str, client: httpx.AsyncClient | None = None) -> None:
    url = _object_url(bucket, path)
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=get_settings().storage_timeout_seconds)
    try:
        response = await http.delete(url, headers=_auth_headers())
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise StoreWriteError(f"Receipt delete failed: {exc}") from exc
    finally:
        if owns_client:
            await http.aclose()
