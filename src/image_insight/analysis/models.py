"""Data models for image metadata, analysis results and chat turns."""

import hashlib
import mimetypes
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Dict, Any


# Number of literary excerpts in every analysis result
EXCERPT_COUNT = 2


@dataclass(frozen=True)
class GpsCoordinates:
    """Latitude/longitude pair as display strings (signed decimal degrees)."""
    latitude: str
    longitude: str

    def to_dict(self) -> Dict[str, str]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class ImageMetadata:
    """Camera, optics, exposure and GPS data read from an image's EXIF block.

    An image without any of these fields has no metadata at all: callers get
    ``None`` instead of an empty instance.
    """
    make: Optional[str] = None
    model: Optional[str] = None
    focal_length: Optional[str] = None
    f_number: Optional[str] = None
    iso: Optional[str] = None
    exposure_time: Optional[str] = None
    gps: Optional[GpsCoordinates] = None

    @property
    def has_gps(self) -> bool:
        return self.gps is not None

    def is_empty(self) -> bool:
        """Check whether no field was populated."""
        return not any((
            self.make, self.model, self.focal_length, self.f_number,
            self.iso, self.exposure_time, self.gps,
        ))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase record shown to users, skipping unset fields."""
        data: Dict[str, Any] = {}
        for key, value in (
            ("make", self.make),
            ("model", self.model),
            ("focalLength", self.focal_length),
            ("fNumber", self.f_number),
            ("iso", self.iso),
            ("exposureTime", self.exposure_time),
        ):
            if value:
                data[key] = value
        if self.gps is not None:
            data["gps"] = self.gps.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ImageMetadata"]:
        """Create from a record produced by ``to_dict``."""
        if not data:
            return None
        gps = data.get("gps")
        metadata = cls(
            make=data.get("make"),
            model=data.get("model"),
            focal_length=data.get("focalLength"),
            f_number=data.get("fNumber"),
            iso=data.get("iso"),
            exposure_time=data.get("exposureTime"),
            gps=GpsCoordinates(gps["latitude"], gps["longitude"]) if gps else None,
        )
        return None if metadata.is_empty() else metadata


@dataclass(frozen=True)
class LocationInfo:
    """Shooting location resolved by the model from GPS coordinates."""
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None

    def is_valid(self) -> bool:
        return any((self.city, self.region, self.country))

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"city": self.city, "region": self.region, "country": self.country}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["LocationInfo"]:
        """Create from the model payload.

        A null payload and an object whose fields are all empty both mean
        "no location".

        Raises:
            TypeError: If the payload is neither null nor an object, or a
                field is not a string.
        """
        if data is None:
            return None
        if not isinstance(data, dict):
            raise TypeError(f"location must be an object or null, got {type(data).__name__}")
        values = {}
        for key in ("city", "region", "country"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise TypeError(f"location.{key} must be a string")
            values[key] = value or None
        location = cls(**values)
        return location if location.is_valid() else None


@dataclass(frozen=True)
class LiteraryExcerpt:
    """A literary quotation matching the mood of the image.

    ``translation`` is the empty string when the excerpt is already written in
    the output language.
    """
    excerpt: str
    author: str
    work: str
    translation: str = ""

    def to_dict(self) -> Dict[str, str]:
        # Wire keys are the ones the model is asked to produce
        return {
            "extrait": self.excerpt,
            "auteur": self.author,
            "oeuvre": self.work,
            "traduction": self.translation,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "LiteraryExcerpt":
        if not isinstance(data, dict):
            raise TypeError("excerpt entries must be objects")
        values = []
        for key in ("extrait", "auteur", "oeuvre", "traduction"):
            value = data[key]
            if not isinstance(value, str):
                raise TypeError(f"excerpt.{key} must be a string")
            values.append(value)
        return cls(*values)


def _string_list(data: Dict[str, Any], key: str) -> List[str]:
    value = data[key]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise TypeError(f"{key} must be an array of strings")
    return list(value)


@dataclass(frozen=True)
class AnalysisResult:
    """Creative content generated for one image by a single model call."""
    titles: List[str] = field(default_factory=list)
    captions: List[str] = field(default_factory=list)
    excerpts: List[LiteraryExcerpt] = field(default_factory=list)
    location: Optional[LocationInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape returned by the model."""
        return {
            "titles": list(self.titles),
            "captions": list(self.captions),
            "excerpts": [excerpt.to_dict() for excerpt in self.excerpts],
            "location": self.location.to_dict() if self.location else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "AnalysisResult":
        """Create from the decoded model payload.

        Raises:
            KeyError: If a required field is missing (``location`` included).
            TypeError: If a field has the wrong type.
            ValueError: If the number of excerpts is not ``EXCERPT_COUNT``.
        """
        if not isinstance(data, dict):
            raise TypeError("analysis payload must be a JSON object")
        excerpts = data["excerpts"]
        if not isinstance(excerpts, list):
            raise TypeError("excerpts must be an array")
        if len(excerpts) != EXCERPT_COUNT:
            raise ValueError(f"expected {EXCERPT_COUNT} excerpts, got {len(excerpts)}")
        return cls(
            titles=_string_list(data, "titles"),
            captions=_string_list(data, "captions"),
            excerpts=[LiteraryExcerpt.from_dict(item) for item in excerpts],
            location=LocationInfo.from_dict(data["location"]),
        )


class Role(str, Enum):
    """Author of a chat turn."""
    USER = "user"
    MODEL = "model"


@dataclass(frozen=True)
class Timestamp:
    """Creation time of a chat turn.

    A pending timestamp belongs to a turn not yet confirmed by the store; a
    server timestamp carries the time assigned by the store on write.
    """
    value: Optional[datetime] = None

    @classmethod
    def pending(cls) -> "Timestamp":
        return cls(None)

    @classmethod
    def server(cls, value: datetime) -> "Timestamp":
        return cls(value)

    @property
    def is_pending(self) -> bool:
        return self.value is None

    def isoformat(self) -> Optional[str]:
        return self.value.isoformat() if self.value is not None else None


@dataclass(frozen=True)
class ChatMessage:
    """One persisted turn of a conversation."""
    text: str
    role: str
    created_at: Timestamp = field(default_factory=Timestamp.pending)
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "role": self.role,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ChatTurn:
    """Role/text pair handed to the model as conversation history."""
    role: Role
    text: str


@dataclass(frozen=True)
class UploadedImage:
    """An image file received from the user."""
    filename: str
    data: bytes
    mime_type: str = "image/jpeg"

    @property
    def preview_handle(self) -> str:
        """Short content hash used as the local preview identifier."""
        return hashlib.md5(self.data).hexdigest()[:16]

    @classmethod
    def from_path(cls, path: str) -> "UploadedImage":
        """Read an image file from disk."""
        file_path = Path(path)
        mime_type, _ = mimetypes.guess_type(file_path.name)
        return cls(
            filename=file_path.name,
            data=file_path.read_bytes(),
            mime_type=mime_type or "image/jpeg",
        )


@dataclass(frozen=True)
class AnalysisRecord:
    """Write-once history entry for one completed analysis."""
    id: str
    user_id: str
    image_ref: str
    file_name: str
    metadata: Optional[ImageMetadata]
    result: AnalysisResult
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "image_ref": self.image_ref,
            "file_name": self.file_name,
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "result": self.result.to_dict(),
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class SessionState:
    """In-memory state of the analysis view for one user."""
    file: Optional[UploadedImage] = None
    preview: Optional[str] = None
    metadata: Optional[ImageMetadata] = None
    result: Optional[AnalysisResult] = None
    loading: bool = False
    error: Optional[str] = None
    generation: int = 0

    def reset(self, keep_file: bool = False) -> None:
        """Clear metadata, result and error, optionally keeping the file."""
        self.metadata = None
        self.result = None
        self.error = None
        if not keep_file:
            self.file = None
            self.preview = None

    def clear(self) -> None:
        """Drop everything, including the file and the loading flag."""
        self.reset(keep_file=False)
        self.loading = False

    def snapshot(self) -> Dict[str, Any]:
        """Plain-data view of the state for presentation layers."""
        return {
            "file_name": self.file.filename if self.file else None,
            "preview": self.preview,
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "result": self.result.to_dict() if self.result else None,
            "loading": self.loading,
            "error": self.error,
        }
