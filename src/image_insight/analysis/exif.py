"""EXIF metadata extraction for uploaded images."""

import io
import logging
import math
from typing import Any, Dict, Optional, Sequence

from PIL import ExifTags, Image, UnidentifiedImageError

from image_insight.analysis.errors import MetadataUnavailable
from image_insight.analysis.models import GpsCoordinates, ImageMetadata

logger = logging.getLogger(__name__)


def format_exposure_time(value: float) -> str:
    """Format an exposure time in seconds the way cameras display it.

    Args:
        value: Exposure time in seconds

    Returns:
        ``"1/250"`` style for sub-second exposures, the plain value otherwise.
    """
    if value >= 1:
        return f"{value:g}"
    if value > 0:
        # Halves round up: 1/0.4 gives "1/3"
        return f"1/{math.floor(1 / value + 0.5)}"
    return f"{value:g}"


def _to_float(value: Any) -> Optional[float]:
    # IFDRational with a zero denominator converts to nan
    try:
        number = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    return number if math.isfinite(number) else None


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value).replace("\x00", "").strip()
    return text or None


def _first(value: Any) -> Any:
    if isinstance(value, (tuple, list)):
        return value[0] if value else None
    return value


def _dms_to_degrees(dms: Sequence[Any], ref: Any) -> Optional[float]:
    """Convert a (degrees, minutes, seconds) triple to signed decimal degrees."""
    if not isinstance(dms, (tuple, list)) or not dms:
        return None
    parts = [_to_float(part) for part in dms]
    if any(part is None for part in parts):
        return None
    degrees = parts[0]
    if len(parts) > 1:
        degrees += parts[1] / 60.0
    if len(parts) > 2:
        degrees += parts[2] / 3600.0
    ref_text = _to_text(ref)
    if ref_text and ref_text.upper() in ("S", "W"):
        degrees = -degrees
    return degrees


def _read_gps(gps_ifd: Dict[int, Any]) -> Optional[GpsCoordinates]:
    lat = gps_ifd.get(ExifTags.GPS.GPSLatitude)
    lon = gps_ifd.get(ExifTags.GPS.GPSLongitude)
    if lat is None or lon is None:
        return None
    latitude = _dms_to_degrees(lat, gps_ifd.get(ExifTags.GPS.GPSLatitudeRef))
    longitude = _dms_to_degrees(lon, gps_ifd.get(ExifTags.GPS.GPSLongitudeRef))
    if latitude is None or longitude is None:
        return None
    return GpsCoordinates(latitude=f"{latitude:.6f}", longitude=f"{longitude:.6f}")


def _read_metadata(data: bytes) -> ImageMetadata:
    """Parse the EXIF block of an image.

    Raises:
        MetadataUnavailable: If the bytes are not an image or carry no EXIF data.
    """
    try:
        img = Image.open(io.BytesIO(data))
    except UnidentifiedImageError as e:
        raise MetadataUnavailable("Not a recognized image format") from e

    with img:
        exif = img.getexif()
        if not exif:
            raise MetadataUnavailable("No EXIF block")
        exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
        gps_ifd = exif.get_ifd(ExifTags.IFD.GPSInfo)

    def tag(key: int) -> Any:
        # Some writers put camera settings in IFD0 instead of the Exif IFD
        value = exif_ifd.get(key)
        return value if value is not None else exif.get(key)

    focal_length = _to_float(tag(ExifTags.Base.FocalLength))
    f_number = _to_float(tag(ExifTags.Base.FNumber))
    iso = _first(tag(ExifTags.Base.ISOSpeedRatings))
    exposure = _to_float(tag(ExifTags.Base.ExposureTime))

    return ImageMetadata(
        make=_to_text(exif.get(ExifTags.Base.Make)),
        model=_to_text(exif.get(ExifTags.Base.Model)),
        focal_length=f"{focal_length:g} mm" if focal_length else None,
        f_number=f"{f_number:g}" if f_number else None,
        iso=str(iso) if iso else None,
        exposure_time=format_exposure_time(exposure) if exposure else None,
        gps=_read_gps(gps_ifd) if gps_ifd else None,
    )


def extract_metadata(data: bytes) -> Optional[ImageMetadata]:
    """Extract camera, exposure and GPS metadata from raw image bytes.

    Never raises: corrupt blocks, unsupported formats and images without
    metadata all yield ``None``.

    Args:
        data: Raw bytes of the uploaded file

    Returns:
        ImageMetadata, or None when no field could be read
    """
    try:
        metadata = _read_metadata(data)
    except MetadataUnavailable as e:
        logger.debug(f"No metadata available: {e}")
        return None
    except Exception as e:
        logger.warning(f"Could not read EXIF data: {e}")
        return None

    if metadata.is_empty():
        return None
    return metadata


def extract_metadata_from_path(image_path: str) -> Optional[ImageMetadata]:
    """Convenience function to extract metadata from a file on disk."""
    try:
        with open(image_path, "rb") as f:
            data = f.read()
    except OSError as e:
        logger.warning(f"Could not read {image_path}: {e}")
        return None
    return extract_metadata(data)
