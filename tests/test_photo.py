"""
Tests for the Photo model and EXIF extraction.
"""

from fractions import Fraction

import pytest

import photoflow.photo as photo_module
from photoflow.models import DecodedImage, ExifData
from photoflow.photo import Photo, extract_exif


class FakeTag:
    """Stands in for an exifread IfdTag: printable, with a ``values`` list."""

    def __init__(self, printable, values=None):
        self.printable = printable
        self.values = values if values is not None else [printable]

    def __str__(self):
        return self.printable


@pytest.fixture
def jpeg_file(tmp_path):
    path = tmp_path / "photo.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe1" + b"\x00" * 64)
    return path


@pytest.fixture
def fake_tags(monkeypatch):
    tags = {
        'Image Make': FakeTag("FUJIFILM "),
        'Image Model': FakeTag("X-T4"),
        'EXIF ExposureTime': FakeTag("1/250", [Fraction(1, 250)]),
        'EXIF FNumber': FakeTag("28/10", [Fraction(28, 10)]),
        'EXIF ISOSpeedRatings': FakeTag("400", [400]),
        'EXIF FocalLength': FakeTag("35", [Fraction(35, 1)]),
        'EXIF DateTimeOriginal': FakeTag("2023:06:01 12:30:00"),
    }
    monkeypatch.setattr(photo_module.exifread, "process_file",
                        lambda f, details=False: dict(tags))
    return tags


class TestExtractExif:

    def test_all_fields(self, jpeg_file, fake_tags):
        exif = extract_exif(jpeg_file)
        assert exif.make == "FUJIFILM"
        assert exif.model == "X-T4"
        assert exif.exposure_time == "1/250"
        assert exif.f_number == pytest.approx(2.8)
        assert exif.iso == 400
        assert exif.focal_length == pytest.approx(35.0)
        assert exif.datetime == "2023:06:01 12:30:00"

    def test_missing_fields_stay_none(self, jpeg_file, monkeypatch):
        monkeypatch.setattr(photo_module.exifread, "process_file",
                            lambda f, details=False: {'Image Model': FakeTag("EOS R5")})
        exif = extract_exif(jpeg_file)
        assert exif == ExifData(model="EOS R5")

    def test_zero_denominator_is_ignored(self, jpeg_file, monkeypatch):
        zero = type("Ratio", (), {"numerator": 1, "denominator": 0})()
        monkeypatch.setattr(photo_module.exifread, "process_file",
                            lambda f, details=False: {'EXIF FNumber': FakeTag("1/0", [zero])})
        assert extract_exif(jpeg_file).f_number is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            extract_exif(tmp_path / "nope.jpg")


class TestPhoto:

    def test_metadata_loaded(self, jpeg_file, fake_tags):
        photo = Photo(jpeg_file)
        assert photo.path == jpeg_file
        assert photo.exif_data.model == "X-T4"
        assert photo.image is None
        assert photo.get_rgb_data() is None

    def test_metadata_failure_is_not_fatal(self, jpeg_file, monkeypatch):
        def explode(f, details=False):
            raise ValueError("corrupt IFD")

        monkeypatch.setattr(photo_module.exifread, "process_file", explode)
        photo = Photo(jpeg_file)
        assert photo.exif_data is None

    def test_missing_file_is_not_fatal(self, tmp_path):
        photo = Photo(tmp_path / "gone.jpg")
        assert photo.exif_data is None

    def test_skip_metadata(self, jpeg_file, monkeypatch):
        def explode(f, details=False):
            raise AssertionError("should not be called")

        monkeypatch.setattr(photo_module.exifread, "process_file", explode)
        assert Photo(jpeg_file, load_metadata=False).exif_data is None

    def test_set_image(self, jpeg_file):
        photo = Photo(jpeg_file, load_metadata=False)
        image = DecodedImage(width=2, height=1, buffer=bytes(range(6)))
        photo.set_image(image)
        assert photo.image is image
        assert photo.get_rgb_data() == bytes(range(6))

    def test_load_image_uses_cache(self, jpeg_file):
        image = DecodedImage(width=1, height=1, buffer=b"\x00\x00\x00")

        class StubCache:
            def __init__(self):
                self.paths = []

            def get_or_decode(self, path):
                self.paths.append(path)
                return image

        cache = StubCache()
        photo = Photo(jpeg_file, load_metadata=False)
        assert photo.load_image(cache) is image
        assert cache.paths == [jpeg_file]
