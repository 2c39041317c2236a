"""
RAW sensor decoding and demosaicing for PhotoFlow

Turns single-channel CFA samples exposed by LibRaw (through rawpy) into a
packed RGB8 image: level normalization, white balance, neighbour-average
demosaicing and per-format gamma encoding.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import rawpy

from photoflow.errors import ConfigError, DecodeError, ReadError
from photoflow.models import DecodedImage
from .detector import ImageType, detect_image_type

logger = logging.getLogger(__name__)

RED, GREEN, BLUE = 0, 1, 2
CHANNEL_NAMES = ('R', 'G', 'B')

DEFAULT_GAMMA = 2.2
GAMMA_TABLE: Dict[ImageType, float] = {
    ImageType.RAW_FUJI: 2.4,
    ImageType.RAW_CANON: 2.1,
}

BORDER_MODES = ('none', 'replicate')

AXIAL_OFFSETS = ((0, -1), (0, 1), (-1, 0), (1, 0))
DIAGONAL_OFFSETS = ((-1, -1), (1, -1), (-1, 1), (1, 1))

# Fuji X-Trans tile, rows indexed by y
XTRANS_PATTERN = (
    (2, 1, 1, 2, 1, 1),
    (1, 2, 0, 1, 0, 2),
    (1, 0, 1, 2, 1, 0),
    (2, 1, 1, 2, 1, 1),
    (1, 2, 0, 1, 0, 2),
    (1, 0, 1, 2, 1, 0),
)


@dataclass(frozen=True)
class CFAPattern:
    """
    Repeating colour filter tile.

    ``pattern[y][x]`` is the channel index (0=R, 1=G, 2=B) sampled at
    sensor position ``(x mod width, y mod height)``.
    """
    pattern: Tuple[Tuple[int, ...], ...]
    name: str = ""

    def __post_init__(self):
        rows = tuple(tuple(int(c) for c in row) for row in self.pattern)
        if not rows or not rows[0]:
            raise ConfigError("CFA tile must be at least 1x1")
        if any(len(row) != len(rows[0]) for row in rows):
            raise ConfigError("CFA tile rows must all have the same width")
        if any(c not in (RED, GREEN, BLUE) for row in rows for c in row):
            raise ConfigError(f"CFA tile holds channel indices outside 0-2: {rows}")
        object.__setattr__(self, 'pattern', rows)

    @property
    def width(self) -> int:
        return len(self.pattern[0])

    @property
    def height(self) -> int:
        return len(self.pattern)

    def color_at(self, x: int, y: int) -> int:
        return self.pattern[y % self.height][x % self.width]

    def channel_map(self, width: int, height: int) -> np.ndarray:
        """Channel index for every sensor pixel as an (height, width) array"""
        tile = np.asarray(self.pattern, dtype=np.uint8)
        reps_y = -(-height // self.height)
        reps_x = -(-width // self.width)
        return np.tile(tile, (reps_y, reps_x))[:height, :width]

    @classmethod
    def bayer(cls, layout: str = "RGGB") -> 'CFAPattern':
        """2x2 Bayer tile from a four-letter layout such as RGGB or GBRG"""
        layout = layout.upper()
        if len(layout) != 4 or any(c not in CHANNEL_NAMES for c in layout):
            raise ConfigError(f"Invalid Bayer layout: {layout!r}")
        idx = [CHANNEL_NAMES.index(c) for c in layout]
        return cls(pattern=((idx[0], idx[1]), (idx[2], idx[3])), name=layout)

    @classmethod
    def xtrans(cls) -> 'CFAPattern':
        return cls(pattern=XTRANS_PATTERN, name="X-Trans")

    @classmethod
    def from_raw_pattern(cls, raw_pattern: np.ndarray, color_desc: bytes) -> 'CFAPattern':
        """
        Build from rawpy's ``raw_pattern`` and ``color_desc``.

        rawpy indexes into ``color_desc`` (e.g. b'RGBG'), where the second
        green of a Bayer sensor has its own index.
        """
        desc = color_desc.decode('ascii') if isinstance(color_desc, bytes) else str(color_desc)
        pattern = np.asarray(raw_pattern)
        if pattern.ndim != 2 or pattern.size == 0:
            raise ConfigError(f"Unusable CFA pattern from decoder: {pattern!r}")
        try:
            rows = tuple(
                tuple(CHANNEL_NAMES.index(desc[int(c)]) for c in row)
                for row in pattern
            )
        except (IndexError, ValueError) as e:
            raise ConfigError(f"CFA pattern {pattern.tolist()} does not map onto {desc!r}") from e
        name = "".join(CHANNEL_NAMES[c] for row in rows for c in row)
        return cls(pattern=rows, name=name)


@dataclass
class RawSensorImage:
    """
    Flat CFA sample buffer plus the calibration needed to develop it.

    Integer samples (up to 16 bits) are normalized against the per-channel
    black and white levels; float samples are taken as already scaled.
    """
    width: int
    height: int
    samples: np.ndarray
    cfa: CFAPattern
    black_levels: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    white_levels: Tuple[float, float, float] = (65535.0, 65535.0, 65535.0)
    wb_coeffs: Tuple[float, float, float] = (1.0, 1.0, 1.0)

    @property
    def is_float(self) -> bool:
        return np.issubdtype(np.asarray(self.samples).dtype, np.floating)


def gamma_for(image_type: Optional[ImageType],
              table: Optional[Dict[ImageType, float]] = None,
              default: float = DEFAULT_GAMMA) -> float:
    """Gamma exponent tuned for a RAW sub-format"""
    table = GAMMA_TABLE if table is None else table
    return table.get(image_type, default)


def _check_geometry(sensor: RawSensorImage) -> np.ndarray:
    if sensor.cfa.width <= 0 or sensor.cfa.height <= 0:
        raise ConfigError(f"CFA tile must be positive, got {sensor.cfa.width}x{sensor.cfa.height}")
    if sensor.width <= 0 or sensor.height <= 0:
        raise DecodeError(f"Invalid sensor dimensions {sensor.width}x{sensor.height}")

    samples = np.asarray(sensor.samples)
    if samples.size != sensor.width * sensor.height:
        raise DecodeError(
            f"Sensor buffer holds {samples.size} samples, expected "
            f"{sensor.width * sensor.height} for {sensor.width}x{sensor.height}"
        )
    return samples.reshape(sensor.height, sensor.width)


def normalize(sensor: RawSensorImage, channels: np.ndarray) -> np.ndarray:
    """Scale samples to 0..1 using the level range of each pixel's channel"""
    samples = _check_geometry(sensor)

    if sensor.is_float:
        return np.clip(samples.astype(np.float64), 0.0, 1.0)

    black = np.asarray(sensor.black_levels, dtype=np.float64)
    white = np.asarray(sensor.white_levels, dtype=np.float64)
    ranges = white - black
    if np.any(ranges <= 0):
        raise ConfigError(
            f"Degenerate normalization range: black={sensor.black_levels}, "
            f"white={sensor.white_levels}"
        )

    normalized = (samples.astype(np.float64) - black[channels]) / ranges[channels]
    return np.clip(normalized, 0.0, 1.0)


def _neighbour_mean(plane: np.ndarray, offsets: Sequence[Tuple[int, int]]) -> np.ndarray:
    """
    Mean of the known (non-zero) neighbours for every interior pixel.

    Returns an (H-2, W-2) array; pixels with no known neighbour get 0.0.
    """
    height, width = plane.shape
    total = np.zeros((height - 2, width - 2), dtype=np.float64)
    count = np.zeros((height - 2, width - 2), dtype=np.int32)
    for dx, dy in offsets:
        window = plane[1 + dy:height - 1 + dy, 1 + dx:width - 1 + dx]
        known = window > 0.0
        total += np.where(known, window, 0.0)
        count += known
    return np.divide(total, count, out=np.zeros_like(total), where=count > 0)


def _close_gaps(plane: np.ndarray, holes: np.ndarray) -> None:
    """
    Fill remaining interior holes in place from the 3x3 mean of values
    already known, one ring of holes per pass, until nothing changes.
    """
    while np.any(holes):
        estimate = _neighbour_mean(plane, AXIAL_OFFSETS + DIAGONAL_OFFSETS)
        fillable = holes & (estimate > 0.0)
        if not np.any(fillable):
            break
        interior = plane[1:-1, 1:-1]
        interior[fillable] = estimate[fillable]
        holes = holes & ~fillable


def interpolate(planes: np.ndarray, channels: np.ndarray) -> np.ndarray:
    """
    Fill missing channels of interior pixels from same-channel neighbours.

    Diagonal neighbours are used when red is missing at a blue site or blue
    at a red site; every other gap uses the left/right/up/down neighbours.
    The first estimate reads natively sampled values only. Where the
    preferred neighbours carry no sample the other set is used, and gaps
    left after that (tiles sparser than X-Trans) are closed from the 3x3
    mean of already filled neighbours.

    Args:
        planes: (3, H, W) white-balanced planes, 0.0 where not sampled
        channels: (H, W) native channel index per pixel

    Returns:
        New (3, H, W) array with interior gaps filled
    """
    _, height, width = planes.shape
    result = planes.copy()
    if height < 3 or width < 3:
        return result

    native = channels[1:-1, 1:-1]
    for channel in (RED, GREEN, BLUE):
        plane = planes[channel]
        axial = _neighbour_mean(plane, AXIAL_OFFSETS)
        diagonal = _neighbour_mean(plane, DIAGONAL_OFFSETS)

        opposite = BLUE if channel == RED else RED if channel == BLUE else None
        if opposite is None:
            preferred, other = axial, diagonal
        else:
            use_diagonal = native == opposite
            preferred = np.where(use_diagonal, diagonal, axial)
            other = np.where(use_diagonal, axial, diagonal)
        estimate = np.where(preferred > 0.0, preferred, other)

        interior = result[channel, 1:-1, 1:-1]
        missing = (native != channel) & (interior == 0.0)
        interior[missing] = estimate[missing]
        _close_gaps(result[channel], missing & (interior == 0.0))
    return result


def replicate_border(planes: np.ndarray) -> np.ndarray:
    """Copy the outermost interior rows and columns onto the border"""
    _, height, width = planes.shape
    if height < 3 or width < 3:
        return planes
    planes[:, 0, :] = planes[:, 1, :]
    planes[:, -1, :] = planes[:, -2, :]
    planes[:, :, 0] = planes[:, :, 1]
    planes[:, :, -1] = planes[:, :, -2]
    return planes


def gamma_encode(planes: np.ndarray, gamma: float) -> np.ndarray:
    """Power-law encode (3, H, W) linear planes into an (H, W, 3) uint8 array"""
    if gamma <= 0:
        raise ConfigError(f"Gamma must be positive, got {gamma}")
    # Halves round up
    encoded = np.floor(np.clip(planes, 0.0, 1.0) ** (1.0 / gamma) * 255.0 + 0.5)
    return np.moveaxis(encoded, 0, -1).astype(np.uint8)


def develop(sensor: RawSensorImage, gamma: float = DEFAULT_GAMMA,
            border_mode: str = 'none') -> DecodedImage:
    """
    Run the full RAW pipeline on a sensor image.

    Args:
        sensor: CFA samples and calibration
        gamma: Output gamma exponent
        border_mode: 'none' leaves border pixels with their native channel
            only, 'replicate' copies the nearest interior pixel outward

    Returns:
        DecodedImage with the sensor's width and height

    Raises:
        DecodeError: Sample count does not match the dimensions
        ConfigError: Bad CFA tile, level range, gamma or border mode
    """
    if border_mode not in BORDER_MODES:
        raise ConfigError(f"Unknown border mode {border_mode!r}, expected one of {BORDER_MODES}")

    channels = sensor.cfa.channel_map(sensor.width, sensor.height)
    normalized = normalize(sensor, channels)

    wb = np.asarray(sensor.wb_coeffs, dtype=np.float64)
    if wb.shape != (3,):
        raise ConfigError(f"Expected 3 white balance coefficients, got {sensor.wb_coeffs}")

    planes = np.zeros((3, sensor.height, sensor.width), dtype=np.float64)
    for channel in (RED, GREEN, BLUE):
        mask = channels == channel
        planes[channel][mask] = normalized[mask] * wb[channel]

    planes = interpolate(planes, channels)
    if border_mode == 'replicate':
        planes = replicate_border(planes)

    rgb = gamma_encode(planes, gamma)
    logger.debug(f"Developed {sensor.width}x{sensor.height} sensor image "
                 f"(CFA {sensor.cfa.name or sensor.cfa.pattern}, gamma {gamma})")
    return DecodedImage.from_array(rgb)


class RawDecoder:
    """Reads RAW files with rawpy and develops them with the PhotoFlow pipeline"""

    def __init__(self, gamma_table: Optional[Dict[ImageType, float]] = None,
                 default_gamma: float = DEFAULT_GAMMA, border_mode: str = 'none'):
        """
        Args:
            gamma_table: Per-format gamma overrides (defaults to GAMMA_TABLE)
            default_gamma: Gamma for formats missing from the table
            border_mode: Border policy passed to develop()
        """
        if border_mode not in BORDER_MODES:
            raise ConfigError(f"Unknown border mode {border_mode!r}, expected one of {BORDER_MODES}")
        self.gamma_table = dict(GAMMA_TABLE if gamma_table is None else gamma_table)
        self.default_gamma = default_gamma
        self.border_mode = border_mode

    def read_sensor(self, path: Union[str, Path]) -> RawSensorImage:
        """
        Extract the visible CFA samples and calibration from a RAW file

        Raises:
            ReadError: File does not exist
            DecodeError: LibRaw could not unpack the file
        """
        path = Path(path)
        if not path.exists():
            raise ReadError(f"RAW file does not exist: {path}")

        try:
            with rawpy.imread(str(path)) as raw:
                samples = np.array(raw.raw_image_visible, copy=True)
                cfa = CFAPattern.from_raw_pattern(raw.raw_pattern, raw.color_desc)
                levels = list(raw.black_level_per_channel)
                white_level = float(raw.white_level)
                camera_wb = list(raw.camera_whitebalance)
                color_indices = np.asarray(raw.raw_pattern).ravel().tolist()
                desc = raw.color_desc.decode('ascii')
        except (rawpy.LibRawError, OSError) as e:
            raise DecodeError(f"Failed to decode RAW file {path}: {e}") from e

        height, width = samples.shape[:2]
        black_levels = self._per_channel(levels, color_indices, desc, default=0.0)
        wb = self._per_channel(camera_wb, color_indices, desc, default=0.0)
        if wb[GREEN] > 0:
            wb = tuple(c / wb[GREEN] if c > 0 else 1.0 for c in wb)
        else:
            logger.debug(f"No camera white balance recorded in {path.name}, using unity")
            wb = (1.0, 1.0, 1.0)

        logger.info(f"RAW image decoded: {path.name} ({width}x{height}, CFA {cfa.name})")
        logger.debug(f"Black levels {black_levels}, white level {white_level}, "
                     f"WB R={wb[RED]:.3f} G={wb[GREEN]:.3f} B={wb[BLUE]:.3f}")

        return RawSensorImage(
            width=width,
            height=height,
            samples=samples.ravel(),
            cfa=cfa,
            black_levels=black_levels,
            white_levels=(white_level, white_level, white_level),
            wb_coeffs=wb,
        )

    @staticmethod
    def _per_channel(values: Sequence[float], color_indices: Sequence[int],
                     desc: str, default: float) -> Tuple[float, float, float]:
        """Collapse rawpy's per-colour-index values onto R, G, B"""
        out = [None, None, None]
        for index in color_indices:
            if index >= len(values) or index >= len(desc):
                continue
            channel = CHANNEL_NAMES.index(desc[index])
            if out[channel] is None:
                out[channel] = float(values[index])
        return tuple(default if v is None else v for v in out)

    def load_image(self, path: Union[str, Path],
                   image_type: Optional[ImageType] = None) -> DecodedImage:
        """
        Decode a RAW file into RGB8 pixels

        Args:
            path: RAW file
            image_type: Detected sub-format; detected here when not given

        Returns:
            DecodedImage of the sensor's visible area
        """
        path = Path(path)
        logger.info(f"Loading RAW image: {path}")
        if image_type is None:
            image_type = detect_image_type(path)

        sensor = self.read_sensor(path)
        gamma = gamma_for(image_type, self.gamma_table, self.default_gamma)
        logger.debug(f"Using gamma {gamma} for {image_type.name}")
        return develop(sensor, gamma=gamma, border_mode=self.border_mode)
