"""Shared fixtures: a scripted extraction backend and record factories."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest

from luminarias.models import ImageRecord
from luminarias.store import ImageStore


@dataclass
class FakeBackend:
    """Extraction backend answering from a script keyed by image bytes."""

    name: str = "fake"
    default: str = "12345"
    responses: dict[bytes, str | Exception] = field(default_factory=dict)
    calls: list[tuple[bytes, str, str]] = field(default_factory=list)

    def extract_code(self, data: bytes, mime_type: str, credential: str) -> str:
        self.calls.append((data, mime_type, credential))
        result = self.responses.get(data, self.default)
        if isinstance(result, Exception):
            raise result
        return result


def make_records(n: int, *, prefix: str = "img") -> list[ImageRecord]:
    """Pending records with distinct bytes `img-0`, `img-1`, ..."""
    return [
        ImageRecord(
            file_name=f"{prefix}_{i:03d}.jpg",
            mime_type="image/jpeg",
            data=f"{prefix}-{i}".encode(),
        )
        for i in range(n)
    ]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def store(tmp_path: Path) -> ImageStore:
    return ImageStore(tmp_path / "store")
