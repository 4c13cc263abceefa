from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Self


class FileFormat(ABC):
    @classmethod
    def sniff_bytes(cls, data: bytes) -> Self | None:
        try:
            return cls.read_bytes(data)
        except Exception:
            return None

    @classmethod
    def sniff(cls, f: BinaryIO) -> Self | None:
        return cls.sniff_bytes(f.read())

    @property
    @abstractmethod
    def suggested_extension(self) -> str:
        pass

    @classmethod
    @abstractmethod
    def read_bytes(cls, data: bytes, **kwargs) -> Self:
        pass

    @classmethod
    def read(cls, f: BinaryIO, **kwargs) -> Self:
        return cls.read_bytes(f.read(), **kwargs)

    @abstractmethod
    def export(self, path: Path, fmt: str = None) -> list[Path]:
        pass
