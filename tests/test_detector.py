"""
Tests for header-based format detection.
"""

import pytest

from photoflow.errors import ReadError
from photoflow.processors.detector import ImageType, detect_image_type


def _header(prefix: bytes, size: int = 16, offset_bytes: dict = None) -> bytes:
    data = bytearray(prefix.ljust(size, b"\x00"))
    for offset, value in (offset_bytes or {}).items():
        data[offset:offset + len(value)] = value
    return bytes(data)


@pytest.fixture
def write_file(tmp_path):
    def _write(name: str, data: bytes):
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write


class TestMagicBytes:
    """Each supported signature maps to its ImageType."""

    @pytest.mark.parametrize("name,data,expected", [
        ("a.jpg", _header(b"\xff\xd8\xff\xe0"), ImageType.JPEG),
        ("a.png", _header(b"\x89PNG\r\n\x1a\n"), ImageType.PNG),
        ("a.gif", _header(b"GIF89a"), ImageType.GIF),
        ("a.webp", _header(b"RIFF\x24\x00\x00\x00WEBPVP8 "), ImageType.WEBP),
        ("a.raf", _header(b"FUJIFILMCCD-RAW "), ImageType.RAW_FUJI),
        ("a.cr2", _header(b"XXXXXXXX", offset_bytes={8: b"CR\x02"}), ImageType.RAW_CANON),
        ("a.cr3", _header(b"XXXXXXXX", offset_bytes={8: b"CR\x03"}), ImageType.RAW_CANON),
        ("a.arw", _header(b"SONY"), ImageType.RAW_SONY),
        ("a.rw2", _header(b"IIU\x00"), ImageType.RAW_PANASONIC),
        ("a.crw", _header(b"\x01\x02\x03\x04CIFF"), ImageType.RAW_GENERIC),
        ("a.heic", _header(b"\x00\x00\x00\x18ftypHEIC"), ImageType.RAW_GENERIC),
        ("a.dng", _header(b"ABCDEFGHDNGK"), ImageType.RAW_GENERIC),
        ("a.x3f", _header(b"1234EPAK"), ImageType.RAW_GENERIC),
        ("a.bin", _header(b"nothing to see here"), ImageType.UNKNOWN),
    ])
    def test_signature(self, write_file, name, data, expected):
        assert detect_image_type(write_file(name, data)) == expected

    def test_webp_needs_both_markers(self, write_file):
        path = write_file("riff.wav", _header(b"RIFF\x24\x00\x00\x00WAVEfmt "))
        assert detect_image_type(path) == ImageType.UNKNOWN

    def test_accepts_string_path(self, write_file):
        path = write_file("a.jpg", _header(b"\xff\xd8"))
        assert detect_image_type(str(path)) == ImageType.JPEG


class TestTiffFamily:
    """TIFF headers need a deeper scan to tell NEF from plain TIFF."""

    @pytest.mark.parametrize("magic", [b"II*\x00", b"MM\x00*"])
    def test_plain_tiff(self, write_file, magic):
        path = write_file("a.tif", _header(magic, size=2048))
        assert detect_image_type(path) == ImageType.TIFF

    @pytest.mark.parametrize("magic", [b"II*\x00", b"MM\x00*"])
    def test_nikon_marker_overrides_tiff(self, write_file, magic):
        data = _header(magic, size=4096, offset_bytes={1000: b"NIKON CORPORATION"})
        path = write_file("a.nef", data)
        assert detect_image_type(path) == ImageType.RAW_NIKON

    def test_nikon_marker_beyond_window_is_ignored(self, write_file):
        data = _header(b"II*\x00", size=8192, offset_bytes={5000: b"NIKON"})
        path = write_file("a.tif", data)
        assert detect_image_type(path) == ImageType.TIFF

    def test_short_tiff_still_scanned(self, write_file):
        data = _header(b"MM\x00*", size=64, offset_bytes={40: b"NIKON"})
        path = write_file("small.nef", data)
        assert detect_image_type(path) == ImageType.RAW_NIKON

    def test_tiff_with_canon_marker_is_canon(self, write_file):
        # CR2 files start with a TIFF header followed by "CR\x02" at offset 8
        data = _header(b"II*\x00\x10\x00\x00\x00", offset_bytes={8: b"CR\x02"})
        path = write_file("a.cr2", data)
        assert detect_image_type(path) == ImageType.RAW_CANON


class TestReadErrors:
    """Files that cannot be inspected raise ReadError."""

    def test_truncated_file(self, write_file):
        path = write_file("short.jpg", b"\xff\xd8\xff\xe0" + b"\x00" * 8)
        with pytest.raises(ReadError):
            detect_image_type(path)

    def test_empty_file(self, write_file):
        with pytest.raises(ReadError):
            detect_image_type(write_file("empty.jpg", b""))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ReadError):
            detect_image_type(tmp_path / "missing.jpg")

    def test_directory(self, tmp_path):
        with pytest.raises(ReadError):
            detect_image_type(tmp_path)


class TestImageType:
    def test_is_raw(self):
        raw_types = {t for t in ImageType if t.is_raw()}
        assert raw_types == {
            ImageType.RAW_FUJI, ImageType.RAW_CANON, ImageType.RAW_NIKON,
            ImageType.RAW_SONY, ImageType.RAW_PANASONIC, ImageType.RAW_GENERIC,
        }
        assert not ImageType.UNKNOWN.is_raw()
        assert not ImageType.TIFF.is_raw()
