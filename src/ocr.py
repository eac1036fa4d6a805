"""
Aliyun OCR client (RecognizeAdvanced, ACS3-HMAC-SHA256 signed)
"""

import hashlib
import hmac
import json
import logging
import uuid
from datetime import datetime, timezone

import httpx

from .config import get_settings
from .core.exceptions import OcrError
from .utils import log_execution_time

logger = logging.getLogger(__name__)

SIGNATURE_ALGORITHM = "ACS3-HMAC-SHA256"
OCR_ACTION = "RecognizeAdvanced"


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sign_request(
    access_key_id: str,
    access_key_secret: str,
    headers: dict[str, str],
    body_hash: str,
    method: str = "POST",
    canonical_uri: str = "/",
    canonical_query: str = "",
) -> str:
    """Build the Authorization header value for the signed headers"""
    signed_keys = sorted(headers)
    canonical_headers = "".join(f"{key}:{headers[key]}\n" for key in signed_keys)
    signed_headers = ";".join(signed_keys)

    canonical_request = "\n".join(
        [method, canonical_uri, canonical_query, canonical_headers, signed_headers, body_hash]
    )
    string_to_sign = f"{SIGNATURE_ALGORITHM}\n{sha256_hex(canonical_request.encode())}"
    signature = hmac.new(
        access_key_secret.encode(), string_to_sign.encode(), hashlib.sha256
    ).hexdigest()

    return (
        f"{SIGNATURE_ALGORITHM} Credential={access_key_id},"
        f"SignedHeaders={signed_headers},Signature={signature}"
    )


class AliyunOcrClient:
    """Recognizes text in photographed word lists"""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.settings = get_settings()
        self.endpoint = self.settings.aliyun_ocr_endpoint
        self._client = client or httpx.AsyncClient(timeout=self.settings.api_timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _build_headers(self, body: bytes) -> dict[str, str]:
        body_hash = sha256_hex(body)
        headers = {
            "host": self.endpoint,
            "x-acs-action": OCR_ACTION,
            "x-acs-content-sha256": body_hash,
            "x-acs-date": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "x-acs-signature-nonce": str(uuid.uuid4()),
            "x-acs-version": self.settings.aliyun_ocr_version,
        }
        authorization = sign_request(
            self.settings.alibaba_cloud_access_key_id,
            self.settings.alibaba_cloud_access_key_secret,
            headers,
            body_hash,
        )
        return {
            **headers,
            "Content-Type": "application/octet-stream",
            "Authorization": authorization,
        }

    @log_execution_time
    async def recognize(self, image_bytes: bytes) -> str:
        """Return the text recognized in an image"""
        if not self.settings.ocr_configured:
            raise OcrError("OCR credentials are not configured")

        try:
            response = await self._client.post(
                f"https://{self.endpoint}/",
                headers=self._build_headers(image_bytes),
                content=image_bytes,
            )
        except httpx.RequestError as e:
            raise OcrError(f"OCR request failed: {e}") from e

        if not response.is_success:
            raise OcrError(f"OCR 识别失败: {response.status_code} - {response.text}")

        try:
            result = response.json()
        except ValueError as e:
            raise OcrError("OCR returned a non-JSON response") from e

        data = result.get("Data")
        if not data:
            return ""

        try:
            parsed = json.loads(data)
        except (json.JSONDecodeError, TypeError):
            return data
        if isinstance(parsed, dict):
            return parsed.get("content") or data
        return data


# Global instance
_ocr_client = None


def get_ocr_client() -> AliyunOcrClient:
    """Get global OCR client instance"""
    global _ocr_client
    if _ocr_client is None:
        _ocr_client = AliyunOcrClient()
    return _ocr_client
