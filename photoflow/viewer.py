"""
Headless photo viewer state.

Navigation is a single-threaded reducer: ``update()`` takes a message,
mutates the viewer state and returns at most one command. Commands run on
a worker pool and each one produces exactly one result message, which is
fed back through ``update()`` on the owning thread by ``process_events()``.

Every decode request carries a generation number. A result is applied only
if it belongs to the newest request issued for its path, so a slow decode
from an earlier visit can never overwrite a newer one.
"""

import logging
import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from photoflow.cache import ImageCache
from photoflow.errors import PhotoFlowError
from photoflow.io.filesystem import DEFAULT_EXTENSIONS, find_photos
from photoflow.models import DecodedImage
from photoflow.photo import Photo

logger = logging.getLogger(__name__)


@dataclass
class LoadDirectory:
    directory: Optional[Path]


@dataclass
class DirectoryLoaded:
    paths: List[Path] = field(default_factory=list)


@dataclass
class PhotoSelected:
    index: int


@dataclass
class NextPhoto:
    pass


@dataclass
class PreviousPhoto:
    pass


@dataclass
class ImageLoaded:
    path: Path
    generation: int
    image: Optional[DecodedImage] = None
    error: Optional[str] = None


@dataclass
class ErrorMessage:
    text: str


Message = Union[LoadDirectory, DirectoryLoaded, PhotoSelected, NextPhoto,
                PreviousPhoto, ImageLoaded, ErrorMessage]
Command = Callable[[], Message]


def describe_photo(photo: Photo) -> List[str]:
    """Info panel lines for a photo: file name, camera, date and settings"""
    lines = [f"File: {photo.path.name}"]

    exif = photo.exif_data
    if exif is None:
        return lines

    if exif.make and exif.model:
        lines.append(f"{exif.make} {exif.model}")
    elif exif.make or exif.model:
        lines.append(exif.make or exif.model)
    else:
        lines.append("Unknown Camera")

    if exif.datetime:
        lines.append(f"Date: {exif.datetime}")

    settings = []
    if exif.exposure_time:
        settings.append(f"{exif.exposure_time}s")
    if exif.f_number is not None:
        settings.append(f"f/{exif.f_number:.1f}")
    if exif.iso is not None:
        settings.append(f"ISO {exif.iso}")
    if exif.focal_length is not None:
        settings.append(f"{exif.focal_length:g}mm")
    if settings:
        lines.append(" • ".join(settings))

    return lines


class PhotoViewer:
    """Navigation state over a directory of photos, backed by a shared image cache"""

    def __init__(self, cache: ImageCache,
                 extensions: Iterable[str] = DEFAULT_EXTENSIONS,
                 max_workers: int = 4):
        self.cache = cache
        self.extensions = tuple(extensions)
        self.photos: List[Photo] = []
        self.current: Optional[int] = None
        self.error: Optional[str] = None

        self._generation = 0
        self._latest: Dict[Path, int] = {}
        self._events: 'queue.Queue[Message]' = queue.Queue()
        self._pending = 0
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="PhotoFlow-Decoder"
        )

        logger.info(f"PhotoViewer initialized with {max_workers} workers")

    @property
    def current_photo(self) -> Optional[Photo]:
        if self.current is None or self.current >= len(self.photos):
            return None
        return self.photos[self.current]

    @property
    def pending(self) -> int:
        """Commands submitted whose result message has not been processed yet"""
        return self._pending

    def update(self, message: Message) -> Optional[Command]:
        """
        Apply a message to the viewer state

        Returns:
            A command to run in the background, or None
        """
        if isinstance(message, LoadDirectory):
            directory = message.directory
            if directory is None:
                self.error = "No directory selected"
                return None
            extensions = self.extensions
            return lambda: DirectoryLoaded(find_photos(directory, extensions))

        if isinstance(message, DirectoryLoaded):
            logger.debug(f"Directory loaded with {len(message.paths)} paths")
            self.error = None
            photos = [Photo(path) for path in message.paths if Path(path).is_file()]
            if photos:
                self.photos = photos
                self.current = 0
                return self._request_image(0)
            if message.paths:
                self.error = "No valid photos found in directory"
            return None

        if isinstance(message, PhotoSelected):
            if 0 <= message.index < len(self.photos):
                self.current = message.index
                return self._request_image(message.index)
            return None

        if isinstance(message, NextPhoto):
            if self.current is not None and self.current + 1 < len(self.photos):
                self.current += 1
                return self._request_image(self.current)
            return None

        if isinstance(message, PreviousPhoto):
            if self.current is not None and self.current > 0:
                self.current -= 1
                return self._request_image(self.current)
            return None

        if isinstance(message, ImageLoaded):
            self._apply_image(message)
            return None

        if isinstance(message, ErrorMessage):
            logger.info(f"Error: {message.text}")
            self.error = message.text
            return None

        raise TypeError(f"Unknown viewer message: {message!r}")

    def _request_image(self, index: int) -> Command:
        path = self.photos[index].path
        self._generation += 1
        generation = self._generation
        self._latest[path] = generation
        cache = self.cache

        def decode() -> Message:
            try:
                image = cache.get_or_decode(path)
            except PhotoFlowError as e:
                logger.warning(f"Failed to decode {path}: {e}")
                return ImageLoaded(path, generation, error=str(e))
            return ImageLoaded(path, generation, image=image)

        return decode

    def _apply_image(self, message: ImageLoaded):
        if self._latest.get(message.path) != message.generation:
            logger.debug(f"Dropping superseded result for {message.path} "
                         f"(generation {message.generation})")
            return
        del self._latest[message.path]

        if message.image is None:
            logger.info(f"Failed to load image: {message.path}")
            self.error = f"Failed to load image: {message.path}"
            return

        logger.debug(f"Image loaded: {message.path}")
        for photo in self.photos:
            if photo.path == message.path:
                photo.set_image(message.image)
                break

    def dispatch(self, message: Message):
        """Apply a message and start whatever command it produces"""
        command = self.update(message)
        if command is not None:
            self._submit(command)

    def _submit(self, command: Command):
        self._pending += 1
        future = self._executor.submit(self._run, command)
        future.add_done_callback(lambda f: self._events.put(f.result()))

    @staticmethod
    def _run(command: Command) -> Message:
        try:
            return command()
        except Exception as e:
            logger.exception("Background command failed")
            return ErrorMessage(str(e))

    def process_events(self, timeout: Optional[float] = 0.0) -> int:
        """
        Feed finished command results through update() on this thread

        Args:
            timeout: Seconds to wait for the first result (None waits forever)

        Returns:
            Number of messages processed
        """
        processed = 0
        block = timeout is None or timeout > 0
        while True:
            try:
                message = self._events.get(block=block, timeout=timeout if block else None)
            except queue.Empty:
                return processed
            self._pending -= 1
            self.dispatch(message)
            processed += 1
            block = False

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Process results until no command is outstanding"""
        while self._pending > 0:
            if self.process_events(timeout=timeout) == 0:
                return False
        return True

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
