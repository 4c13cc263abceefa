from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator

import numpy as np

from qmdl.file import Cursor


IDENT = b'IDPO'
VERSION = 6
FRAME_NAME_LEN = 16

HEADER = struct.Struct('<4si3f3ff3f8if')
HEADER_SIZE = HEADER.size

TEXCOORD = np.dtype([('on_seam', '<i4'), ('s', '<i4'), ('t', '<i4')])
TRIANGLE = np.dtype([('faces_front', '<i4'), ('vertices', '<i4', (3,))])
VERTEX = np.dtype([('v', 'u1', (3,)), ('normal', 'u1')])


class MalformedCounts(ValueError):
    """A count in the model is negative or can't describe a usable section"""


class SyncType(IntEnum):
    SYNC = 0
    RAND = 1


class SkinType(IntEnum):
    SIMPLE = 0
    GROUP = 1


class FrameType(IntEnum):
    SIMPLE = 0
    GROUP = 1


@dataclass(frozen=True)
class ModelHeader:
    ident: bytes
    version: int
    scale: tuple[float, float, float]
    origin: tuple[float, float, float]
    radius: float
    offsets: tuple[float, float, float]
    num_skins: int
    skin_width: int
    skin_height: int
    num_verts: int
    num_triangles: int
    num_frames: int
    sync_type: int
    flags: int
    size: float

    @classmethod
    def read(cls, cursor: Cursor) -> ModelHeader:
        values = cursor.unpack(HEADER)
        ident, version = values[:2]
        header = cls(ident, version, tuple(values[2:5]), tuple(values[5:8]), values[8], tuple(values[9:12]),
                     *values[12:])
        if ident != IDENT:
            raise ValueError(f'Bad model identifier {ident!r}; expected {IDENT!r}')
        if version != VERSION:
            raise ValueError(f'Unsupported model version {version}; expected {VERSION}')
        header.validate()
        return header

    def validate(self):
        for name in ['num_skins', 'skin_width', 'skin_height', 'num_verts', 'num_triangles', 'num_frames']:
            value = getattr(self, name)
            if value < 0:
                raise MalformedCounts(f'Header field {name} is negative ({value})')
        if self.num_frames == 0:
            raise MalformedCounts('Model has no frames')
        if self.num_verts > 0 and (self.skin_width == 0 or self.skin_height == 0):
            raise MalformedCounts(f'Model has {self.num_verts} vertices but a {self.skin_width}x{self.skin_height} '
                                  'skin')

    @property
    def skin_size(self) -> int:
        return self.skin_width * self.skin_height

    @property
    def pose_size(self) -> int:
        """Size of a pose: bounding min and max, name, and one quantized vertex per model vertex"""
        return 2 * VERTEX.itemsize + FRAME_NAME_LEN + self.num_verts * VERTEX.itemsize


@dataclass(frozen=True)
class SkinEntry:
    offset: int
    size: int
    type: int
    durations: tuple[float, ...] = ()

    @property
    def num_images(self) -> int:
        return len(self.durations) if self.type != SkinType.SIMPLE else 1

    @classmethod
    def read(cls, cursor: Cursor, header: ModelHeader) -> SkinEntry:
        offset = cursor.offset
        skin_type = cursor.int32()
        durations = ()
        num_images = 1
        if skin_type != SkinType.SIMPLE:
            num_images = cursor.int32()
            if num_images < 1:
                raise MalformedCounts(f'Skin group at {offset:#x} has {num_images} images')
            durations = cursor.floats(num_images)
        # pixels are palette indices we don't need; just step over them
        cursor.skip(num_images * header.skin_size)
        return cls(offset, cursor.offset - offset, skin_type, durations)


@dataclass(frozen=True, eq=False)
class FrameBlock:
    """
    One entry of the frame table

    For a frame group, bounds_min and bounds_max are the group's aggregate bounds and name and vertices come from the
    group's first pose. Group poses after the first are stepped over but not exposed.
    """
    index: int
    offset: int
    size: int
    type: int
    name: str
    bounds_min: np.ndarray
    bounds_max: np.ndarray
    vertices: np.ndarray
    intervals: tuple[float, ...] = ()

    @property
    def num_poses(self) -> int:
        return len(self.intervals) if self.type != FrameType.SIMPLE else 1

    @staticmethod
    def _read_pose(cursor: Cursor, num_verts: int) -> tuple[np.ndarray, np.ndarray, str, np.ndarray]:
        bounds = cursor.array(VERTEX, 2)
        raw_name = cursor.read(FRAME_NAME_LEN)
        name = raw_name.split(b'\0', 1)[0].decode('latin-1')
        vertices = cursor.array(VERTEX, num_verts)
        return bounds[0], bounds[1], name, vertices

    @classmethod
    def read(cls, cursor: Cursor, header: ModelHeader, index: int) -> FrameBlock:
        offset = cursor.offset
        frame_type = cursor.int32()
        if frame_type == FrameType.SIMPLE:
            bounds_min, bounds_max, name, vertices = cls._read_pose(cursor, header.num_verts)
            return cls(index, offset, cursor.offset - offset, frame_type, name, bounds_min, bounds_max, vertices)

        num_poses = cursor.int32()
        if num_poses < 1:
            raise MalformedCounts(f'Frame group {index} at {offset:#x} has {num_poses} poses')
        bounds = cursor.array(VERTEX, 2)
        intervals = cursor.floats(num_poses)
        _, _, name, vertices = cls._read_pose(cursor, header.num_verts)
        cursor.skip((num_poses - 1) * header.pose_size)
        return cls(index, offset, cursor.offset - offset, frame_type, name, bounds[0], bounds[1], vertices, intervals)


@dataclass(frozen=True, eq=False)
class Layout:
    """Positions of the sections of an alias model within its buffer"""
    buffer: bytes
    header: ModelHeader
    skins: tuple[SkinEntry, ...]
    texcoords: np.ndarray
    triangles: np.ndarray
    frame_table_offset: int

    def frame_at(self, offset: int, index: int) -> FrameBlock:
        """Decode the frame block starting at the given offset"""
        cursor = Cursor(self.buffer)
        cursor.seek(offset)
        return FrameBlock.read(cursor, self.header, index)

    def iter_frames(self) -> Iterator[FrameBlock]:
        """
        Walk the frame table

        The size of each frame block depends on its type, so the next frame's offset is only known once the current
        one has been decoded.
        """
        cursor = Cursor(self.buffer, self.frame_table_offset)
        for i in range(self.header.num_frames):
            yield FrameBlock.read(cursor, self.header, i)

    def frame_spans(self) -> list[tuple[int, int]]:
        """Offset and size of every frame block, from one full pass over the frame table"""
        return [(frame.offset, frame.size) for frame in self.iter_frames()]


def walk(buffer: bytes) -> Layout:
    """
    Locate the sections of an alias model

    The header, skins, texture coordinates and triangles are decoded here. The frame table is left for
    Layout.iter_frames.

    :param buffer: The complete contents of the model file
    :return: The model's layout, with the texture coordinate and triangle tables as views into the buffer
    """
    cursor = Cursor(buffer)
    header = ModelHeader.read(cursor)
    skins = tuple(SkinEntry.read(cursor, header) for _ in range(header.num_skins))
    texcoords = cursor.array(TEXCOORD, header.num_verts)
    triangles = cursor.array(TRIANGLE, header.num_triangles)
    if triangles.size > 0:
        indices = triangles['vertices']
        if indices.min() < 0 or indices.max() >= header.num_verts:
            raise MalformedCounts(f'Triangle references a vertex outside the range 0-{header.num_verts - 1}')
    return Layout(buffer, header, skins, texcoords, triangles, cursor.offset)
