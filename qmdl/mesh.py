from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from qmdl.anorms import NORMALS
from qmdl.layout import FrameBlock, Layout, MalformedCounts, ModelHeader


def fmt(value) -> str:
    """Format a number the way C's %g does"""
    return f'{float(value):g}'


def dequantize(vertices: np.ndarray, header: ModelHeader) -> np.ndarray:
    scale = np.array(header.scale, dtype=np.float32)
    origin = np.array(header.origin, dtype=np.float32)
    return vertices['v'].astype(np.float32) * scale + origin


def primary_uvs(texcoords: np.ndarray, header: ModelHeader) -> np.ndarray:
    width = np.float32(header.skin_width)
    height = np.float32(header.skin_height)
    uvs = np.empty((len(texcoords), 2), dtype=np.float32)
    uvs[:, 0] = texcoords['s'].astype(np.float32) / width
    uvs[:, 1] = np.float32(1.) - texcoords['t'].astype(np.float32) / height
    return uvs


def seam_uvs(texcoords: np.ndarray, header: ModelHeader) -> np.ndarray | None:
    """
    UVs for the back half of seam vertices

    A vertex on the seam is shared by the front and back of the model, but its texture coordinates only describe the
    front. The back's texels are half the skin width to the right. Non-seam vertices get (0, 0), which no face will
    reference. Returns None if the model has no seam vertices.
    """
    on_seam = texcoords['on_seam'] != 0
    if not np.any(on_seam):
        return None

    width = np.float32(header.skin_width)
    height = np.float32(header.skin_height)
    shifted = (texcoords['s'] + header.skin_width // 2).astype(np.float32)
    uvs = np.zeros((len(texcoords), 2), dtype=np.float32)
    uvs[on_seam, 0] = shifted[on_seam] / width
    uvs[on_seam, 1] = np.float32(1.) - texcoords['t'][on_seam].astype(np.float32) / height
    return uvs


def face_indices(triangles: np.ndarray, texcoords: np.ndarray) -> np.ndarray:
    """
    Position and UV indices (0-based) of each face corner

    :return: An array of shape (num_triangles, 3, 2) where the last axis is (position index, UV index)
    """
    # the model's winding order is the reverse of OBJ's
    corners = triangles['vertices'][:, [0, 2, 1]]
    back_facing = (triangles['faces_front'] == 0)[:, np.newaxis]
    on_seam = texcoords['on_seam'][corners] != 0
    uv_indices = np.where(back_facing & on_seam, corners + len(texcoords), corners)
    return np.stack([corners, uv_indices], axis=-1)


@dataclass(eq=False)
class Mesh:
    """One frame of a model, ready for export"""
    name: str
    positions: np.ndarray
    uvs: np.ndarray
    faces: np.ndarray
    normals: np.ndarray
    seam_uvs: np.ndarray | None = None

    @property
    def all_uvs(self) -> np.ndarray:
        if self.seam_uvs is None:
            return self.uvs
        return np.concatenate([self.uvs, self.seam_uvs])

    def as_obj(self, material_path: str = None, material_name: str = None, with_normals: bool = False) -> str:
        if with_normals and len(self.normals) > 0 and int(self.normals.max()) >= len(NORMALS):
            raise MalformedCounts(f'Frame {self.name!r} has a vertex normal index of {int(self.normals.max())}; only '
                                  f'{len(NORMALS)} normals exist')
        obj = ''
        if material_path is not None:
            obj += f'mtllib {material_path}\n'
        if material_name is not None:
            obj += f'usemtl {material_name}\n'
        for x, y, z in self.positions:
            obj += f'v {fmt(x)} {fmt(y)} {fmt(z)}\n'
        for u, v in self.all_uvs:
            obj += f'vt {fmt(u)} {fmt(v)}\n'
        if with_normals:
            for nx, ny, nz in NORMALS:
                obj += f'vn {fmt(nx)} {fmt(ny)} {fmt(nz)}\n'
        for face in self.faces:
            corners = []
            for position, uv in face:
                corner = f'{position + 1}/{uv + 1}'
                if with_normals:
                    corner += f'/{int(self.normals[position]) + 1}'
                corners.append(corner)
            obj += f'f {" ".join(corners)}\n'
        return obj


def emit_frame(layout: Layout, frame: FrameBlock) -> Mesh:
    header = layout.header
    return Mesh(
        frame.name,
        dequantize(frame.vertices, header),
        primary_uvs(layout.texcoords, header),
        face_indices(layout.triangles, layout.texcoords),
        frame.vertices['normal'],
        seam_uvs(layout.texcoords, header),
    )
