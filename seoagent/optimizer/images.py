"""Featured-image generation and optimisation."""

from __future__ import annotations

import base64
import io
import json
from http.client import HTTPException
from typing import Any, Callable, Dict
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from PIL import Image, ImageOps, UnidentifiedImageError

from ..errors import ExternalServiceError, MalformedResponseError
from ..logging import get_logger

DEFAULT_BASE_URL = "https://api.openai.com/v1"

Transport = Callable[[str, Dict[str, Any], Dict[str, str], float], Dict[str, Any]]


class ImageGenerator:
    """Requests images from an OpenAI-compatible ``/images/generations`` endpoint."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = "dall-e-3",
        base_url: str | None = None,
        size: str = "1792x1024",
        request_timeout: float = 120.0,
        transport: Transport | None = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.size = size
        self._timeout = request_timeout
        self._transport = transport or _http_transport
        self.logger = get_logger("optimizer.images")

    def generate(self, prompt: str) -> bytes:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "n": 1,
            "size": self.size,
            "response_format": "b64_json",
        }
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        response = self._transport(f"{self._base_url}/images/generations", payload, headers, self._timeout)
        data = response.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise MalformedResponseError("Image response has no data")
        encoded = data[0].get("b64_json")
        if not isinstance(encoded, str):
            raise MalformedResponseError("Image response has no b64_json payload")
        try:
            return base64.b64decode(encoded)
        except ValueError as exc:
            raise MalformedResponseError("Image payload is not valid base64") from exc


def optimize(
    raw: bytes,
    *,
    width: int = 1200,
    height: int = 630,
    format: str = "webp",
    quality: int = 85,
) -> bytes:
    """Center-crop ``raw`` to ``width``x``height`` and re-encode it."""
    try:
        with Image.open(io.BytesIO(raw)) as image:
            image.load()
            converted = image.convert("RGB")
    except (UnidentifiedImageError, OSError) as exc:
        raise MalformedResponseError(f"Unreadable image data: {exc}") from exc
    fitted = ImageOps.fit(converted, (width, height), method=Image.Resampling.LANCZOS)
    buffer = io.BytesIO()
    fitted.save(buffer, format=format.upper(), quality=quality, optimize=True)
    return buffer.getvalue()


def _http_transport(
    url: str, payload: Dict[str, Any], headers: Dict[str, str], timeout: float
) -> Dict[str, Any]:
    request = Request(url, data=json.dumps(payload).encode("utf-8"), headers=headers, method="POST")
    try:
        with urlopen(request, timeout=timeout) as response:  # type: ignore[arg-type]
            raw = response.read()
    except HTTPError as exc:  # pragma: no cover - depends on remote service
        raise ExternalServiceError(f"Image request failed with status {exc.code}") from exc
    except URLError as exc:  # pragma: no cover - depends on network
        raise ExternalServiceError(f"Image request failed: {exc.reason}") from exc
    except (TimeoutError, HTTPException, OSError) as exc:
        raise ExternalServiceError(f"Image request failed: {exc}") from exc
    try:
        decoded = json.loads(raw.decode("utf-8"))
    except json.JSONDecodeError as exc:
        raise MalformedResponseError("Image endpoint returned invalid JSON") from exc
    return decoded if isinstance(decoded, dict) else {}


__all__ = ["ImageGenerator", "optimize"]
