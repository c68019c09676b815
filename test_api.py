"""Test the FastAPI endpoints."""

import base64
import io

from fastapi.testclient import TestClient
from PIL import Image

from main import app
from coverfit import CoverFitPipeline, MediaType
from conftest import FakeBackend, noise_image, solid_image

client = TestClient(app)


def upload(image, content_type=None):
    return {"image": (image.name, image.data, content_type or image.media_type.value)}


def decoded_size(body):
    with Image.open(io.BytesIO(base64.b64decode(body["base64_image"]))) as result:
        return result.size


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}

    r = client.get("/")
    assert r.json()["service"] == "CoverFit API"


def test_media_types():
    body = client.get("/media-types").json()

    assert body["image/jpeg"] == {"extension": "jpg", "lossy": True, "raster": True}
    assert body["image/svg+xml"]["raster"] is False


def test_dimensions():
    r = client.post("/dimensions", files=upload(solid_image(320, 200)))

    assert r.status_code == 200
    assert r.json() == {"width": 320, "height": 200, "media_type": "image/png"}


def test_crop():
    image = solid_image(1600, 1200, MediaType.JPEG, name="photo.jpeg")

    r = client.post(
        "/crop",
        files=upload(image),
        data={"target_width": "800", "target_height": "600"},
    )

    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "photo.jpg"
    assert body["media_type"] == "image/jpeg"
    assert (body["width"], body["height"]) == (800, 600)
    assert body["unchanged"] is False
    assert body["original_bytes"] == image.size
    assert decoded_size(body) == (800, 600)


def test_crop_small_image_is_unchanged():
    image = solid_image(100, 100)

    r = client.post(
        "/crop",
        files=upload(image),
        data={"target_width": "800", "target_height": "600", "max_mb": "2"},
    )

    body = r.json()
    assert body["unchanged"] is True
    assert base64.b64decode(body["base64_image"]) == image.data


def test_compress():
    image = noise_image(512, 512, MediaType.JPEG)
    max_mb = (image.size / 2) / 1024 / 1024

    r = client.post("/compress", files=upload(image), data={"max_mb": str(max_mb)})

    assert r.status_code == 200
    body = r.json()
    assert body["processed_bytes"] <= image.size / 2
    assert (body["width"], body["height"]) == (512, 512)


def test_non_image_is_rejected_with_415():
    r = client.post(
        "/dimensions",
        files={"image": ("notes.txt", b"hello", "text/plain")},
    )

    assert r.status_code == 415
    assert r.json()["detail"]["error"] == "UnsupportedMediaType"


def test_broken_image_is_rejected_with_422():
    r = client.post(
        "/crop",
        files={"image": ("broken.png", b"not really a png", "image/png")},
        data={"target_width": "10", "target_height": "10"},
    )

    assert r.status_code == 422
    assert r.json()["detail"]["error"] == "DecodeError"


def test_bad_compression_options_are_rejected():
    r = client.post(
        "/compress",
        files=upload(solid_image(10, 10)),
        data={"max_mb": "1", "quality_step": "0"},
    )

    assert r.status_code == 422
    assert r.json()["detail"]["error"] == "InvalidArgument"


def test_encode_failure_is_reported_as_500(monkeypatch):
    import main

    backend = FakeBackend(dimensions=(1000, 1000), fail_encode=True)
    monkeypatch.setattr(main, "pipeline", CoverFitPipeline(backend=backend))

    r = client.post(
        "/crop",
        files={"image": ("photo.jpg", b"raw", "image/jpeg")},
        data={"target_width": "10", "target_height": "10"},
    )

    assert r.status_code == 500
    assert r.json()["detail"]["error"] == "EncodeError"


def test_svg_without_target_is_returned_unchanged():
    svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"/>'

    r = client.post("/crop", files={"image": ("icon.svg", svg, "image/svg+xml")})

    assert r.status_code == 200
    body = r.json()
    assert body["unchanged"] is True
    assert body["media_type"] == "image/svg+xml"
    assert body["width"] is None and body["height"] is None
    assert base64.b64decode(body["base64_image"]) == svg


def test_oversized_upload_is_rejected_with_413(monkeypatch):
    # About 1 KiB
    monkeypatch.setenv("COVERFIT_MAX_UPLOAD_MB", "0.001")
    image = noise_image(64, 64, MediaType.PNG)
    assert image.size > 1100

    r = client.post("/dimensions", files=upload(image))

    assert r.status_code == 413
