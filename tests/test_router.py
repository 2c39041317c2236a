"""
Tests for processor selection.
"""

import pytest

from photoflow.errors import DecodeError
from photoflow.models import DecodedImage
from photoflow.processors import ImageType, ProcessorKind, ProcessorRouter


class RecordingDecoder:
    """Decoder double that records what it was asked to decode."""

    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    def load_image(self, path, image_type=None):
        self.calls.append((path, image_type))
        if self.fail:
            raise DecodeError(f"cannot decode {path}")
        return DecodedImage(width=1, height=1, buffer=b"\x01\x02\x03")


@pytest.fixture
def router():
    return ProcessorRouter(standard=RecordingDecoder(), raw=RecordingDecoder())


@pytest.fixture
def make_file(tmp_path):
    def _make(name: str, header: bytes):
        path = tmp_path / name
        path.write_bytes(header.ljust(32, b"\x00"))
        return path
    return _make


class TestProcessorRouter:

    @pytest.mark.parametrize("header,kind,image_type", [
        (b"\xff\xd8\xff", ProcessorKind.STANDARD, ImageType.JPEG),
        (b"\x89PNG\r\n\x1a\n", ProcessorKind.STANDARD, ImageType.PNG),
        (b"II*\x00", ProcessorKind.STANDARD, ImageType.TIFF),
        (b"FUJIFILM", ProcessorKind.RAW, ImageType.RAW_FUJI),
        (b"SONY", ProcessorKind.RAW, ImageType.RAW_SONY),
        (b"random bytes", ProcessorKind.STANDARD, ImageType.UNKNOWN),
    ])
    def test_select(self, router, make_file, header, kind, image_type):
        assert router.select(make_file("f", header)) == (kind, image_type)

    def test_detection_failure_falls_back_to_standard(self, router, tmp_path):
        path = tmp_path / "tiny.raf"
        path.write_bytes(b"FUJI")
        assert router.select(path) == (ProcessorKind.STANDARD, None)

    def test_missing_file_falls_back_to_standard(self, router, tmp_path):
        assert router.select(tmp_path / "nope.jpg") == (ProcessorKind.STANDARD, None)

    def test_raw_dispatch_passes_detected_type(self, router, make_file):
        path = make_file("a.raf", b"FUJIFILM")
        router.load_image(path)
        assert router.raw.calls == [(path, ImageType.RAW_FUJI)]
        assert router.standard.calls == []

    def test_standard_dispatch(self, router, make_file):
        path = make_file("a.jpg", b"\xff\xd8\xff")
        image = router.load_image(path)
        assert len(image.buffer) == 3
        assert router.standard.calls == [(path, None)]
        assert router.raw.calls == []

    def test_decoder_errors_propagate(self, make_file):
        router = ProcessorRouter(standard=RecordingDecoder(fail=True), raw=RecordingDecoder())
        with pytest.raises(DecodeError):
            router.load_image(make_file("a.png", b"\x89PNG\r\n\x1a\n"))

    def test_default_decoders(self):
        from photoflow.processors import RawDecoder, StandardDecoder
        router = ProcessorRouter()
        assert isinstance(router.standard, StandardDecoder)
        assert isinstance(router.raw, RawDecoder)
