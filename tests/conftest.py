"""Shared fixtures for image-insight tests."""

import asyncio
import io
import os
import tempfile
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import pytest
from PIL import ExifTags, Image
from PIL.TiffImagePlugin import IFDRational

from image_insight.analysis.base import ImageAnalyzer
from image_insight.analysis.models import AnalysisResult, ChatTurn

# Eiffel Tower: 48°51'29.6"N, 2°17'40.2"E
PARIS_GPS = {
    ExifTags.GPS.GPSLatitudeRef: "N",
    ExifTags.GPS.GPSLatitude: (IFDRational(48, 1), IFDRational(51, 1), IFDRational(296, 10)),
    ExifTags.GPS.GPSLongitudeRef: "E",
    ExifTags.GPS.GPSLongitude: (IFDRational(2, 1), IFDRational(17, 1), IFDRational(402, 10)),
}

CAMERA_SETTINGS = {
    ExifTags.Base.FocalLength: IFDRational(42, 10),
    ExifTags.Base.FNumber: IFDRational(28, 10),
    ExifTags.Base.ISOSpeedRatings: 200,
    ExifTags.Base.ExposureTime: IFDRational(1, 250),
}

MODEL_PAYLOAD = {
    "titles": ["A"],
    "captions": ["B"],
    "excerpts": [
        {"extrait": "e1", "auteur": "au1", "oeuvre": "o1", "traduction": ""},
        {"extrait": "e2", "auteur": "au2", "oeuvre": "o2", "traduction": "t2"},
    ],
    "location": {"city": "Paris", "region": "Île-de-France", "country": "France"},
}


def make_jpeg(
    make: Optional[str] = None,
    model: Optional[str] = None,
    exif_ifd: Optional[Dict[int, Any]] = None,
    gps_ifd: Optional[Dict[int, Any]] = None,
) -> bytes:
    """Build a small JPEG carrying the given EXIF tags."""
    img = Image.new("RGB", (16, 16), "white")
    exif = Image.Exif()
    if make is not None:
        exif[ExifTags.Base.Make] = make
    if model is not None:
        exif[ExifTags.Base.Model] = model
    if exif_ifd:
        exif[ExifTags.IFD.Exif] = dict(exif_ifd)
    if gps_ifd:
        exif[ExifTags.IFD.GPSInfo] = dict(gps_ifd)

    buffer = io.BytesIO()
    if len(exif):
        img.save(buffer, format="JPEG", exif=exif)
    else:
        img.save(buffer, format="JPEG")
    return buffer.getvalue()


class FakeAnalyzer(ImageAnalyzer):
    """Scripted analyzer recording the calls it receives."""

    def __init__(
        self,
        payload: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None,
        reply: Sequence[str] = ("Bonjour", " !"),
        stream_error: Optional[Exception] = None,
    ):
        self.payload = payload if payload is not None else MODEL_PAYLOAD
        self.error = error
        self.reply = list(reply)
        self.stream_error = stream_error
        self.analyze_calls: List[Dict[str, Any]] = []
        self.chat_calls: List[Dict[str, Any]] = []
        self.gate: Optional[asyncio.Event] = None

    @property
    def model(self) -> str:
        return "fake"

    async def analyze(self, image, mime_type, instruction, schema) -> AnalysisResult:
        self.analyze_calls.append({
            "image": image, "mime_type": mime_type,
            "instruction": instruction, "schema": schema,
        })
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return AnalysisResult.from_dict(self.payload)

    async def stream_reply(self, history: Sequence[ChatTurn], message: str) -> AsyncIterator[str]:
        self.chat_calls.append({"history": list(history), "message": message})
        if self.gate is not None:
            await self.gate.wait()
        for fragment in self.reply:
            await asyncio.sleep(0)
            yield fragment
        if self.stream_error is not None:
            raise self.stream_error


@pytest.fixture
def temp_db():
    """Create a temporary database path for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield os.path.join(tmpdir, "test.db")


@pytest.fixture
def paris_jpeg() -> bytes:
    return make_jpeg(
        make="Canon",
        model="Canon EOS R5  \x00\x00",
        exif_ifd=CAMERA_SETTINGS,
        gps_ifd=PARIS_GPS,
    )
