"""Tests for featured-image generation and optimisation."""

from __future__ import annotations

import base64
import io
from typing import Any, Dict, List

import pytest
from PIL import Image

from seoagent.errors import ExternalServiceError, MalformedResponseError
from seoagent.optimizer import ImageGenerator, optimize


def _png(width: int = 1792, height: int = 1024) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), (200, 40, 40, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


def test_optimize_crops_and_reencodes() -> None:
    data = optimize(_png(), width=1200, height=630, format="webp", quality=80)

    with Image.open(io.BytesIO(data)) as image:
        assert image.format == "WEBP"
        assert image.size == (1200, 630)


def test_optimize_supports_jpeg() -> None:
    data = optimize(_png(800, 800), width=400, height=210, format="jpeg")

    with Image.open(io.BytesIO(data)) as image:
        assert image.format == "JPEG"
        assert image.size == (400, 210)


def test_optimize_rejects_garbage() -> None:
    with pytest.raises(MalformedResponseError):
        optimize(b"definitely not an image")


def test_generate_decodes_base64_payload() -> None:
    calls: List[Dict[str, Any]] = []
    raw = _png(16, 16)

    def transport(url: str, payload: Dict[str, Any], headers: Dict[str, str], timeout: float) -> Dict[str, Any]:
        calls.append({"url": url, "payload": payload, "headers": headers, "timeout": timeout})
        return {"data": [{"b64_json": base64.b64encode(raw).decode("ascii")}]}

    generator = ImageGenerator("img-key", base_url="http://images.local/v1/", transport=transport)

    assert generator.generate("a lighthouse at dusk") == raw
    assert calls[0]["url"] == "http://images.local/v1/images/generations"
    assert calls[0]["payload"]["prompt"] == "a lighthouse at dusk"
    assert calls[0]["payload"]["response_format"] == "b64_json"
    assert calls[0]["headers"]["Authorization"] == "Bearer img-key"


@pytest.mark.parametrize("response", [{}, {"data": []}, {"data": [{"url": "http://x"}]}])
def test_generate_rejects_responses_without_image(response: Dict[str, Any]) -> None:
    generator = ImageGenerator("k", transport=lambda *_args: response)

    with pytest.raises(MalformedResponseError):
        generator.generate("prompt")


def test_generate_timeout_raises_service_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _timeout(*_args: Any, **_kwargs: Any) -> Any:
        raise TimeoutError("timed out")

    monkeypatch.setattr("seoagent.optimizer.images.urlopen", _timeout)

    with pytest.raises(ExternalServiceError, match="timed out"):
        ImageGenerator("k", base_url="http://images.local/v1").generate("prompt")
