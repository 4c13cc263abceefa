from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator, Self

from qmdl.format import FileFormat
from qmdl.layout import FrameBlock, FrameType, Layout, ModelHeader, SkinType, SyncType, walk
from qmdl.mesh import Mesh, emit_frame


class Model(FileFormat):
    """
    A Quake alias model

    Only the header, skin bookkeeping, texture coordinates and triangles are decoded up front. Frames are decoded one
    at a time as they're exported, since the frame table can only be walked in order.
    """
    TEXTURE_DIR = 'textures'
    TEXTURE_EXTENSION = '.jpg'

    def __init__(self, layout: Layout, name: str = ''):
        self.layout = layout
        self.name = name

    @property
    def suggested_extension(self) -> str:
        return '.mdl'

    @property
    def header(self) -> ModelHeader:
        return self.layout.header

    @property
    def num_frames(self) -> int:
        return self.header.num_frames

    @classmethod
    def read_bytes(cls, data: bytes, *, name: str = '', **kwargs) -> Self:
        return cls(walk(data), name)

    def frames(self) -> Iterator[FrameBlock]:
        return self.layout.iter_frames()

    def meshes(self) -> Iterator[Mesh]:
        for frame in self.frames():
            yield emit_frame(self.layout, frame)

    def frame_path(self, path: Path, index: int) -> Path:
        if self.num_frames == 1:
            return path.with_name(f'{path.name}.obj')
        return path.with_name(f'{path.name}_{index}.obj')

    @staticmethod
    def as_mtl(material_name: str, texture_path: str = None) -> str:
        mtl = f"""newmtl {material_name}
Ka 1 1 1
Kd 1 1 1
Ks 0 0 0
Tr 1
illum 1
Ns 0
"""
        if texture_path is not None:
            mtl += f'map_Kd {texture_path}\n'
        return mtl

    def export(self, path: Path, fmt: str = None, *, texture_dir: str = TEXTURE_DIR,
               with_normals: bool = False) -> list[Path]:
        """
        Export the model as a Wavefront material plus one OBJ file per frame

        :param path: Output path without an extension. The material is written to <path>.mtl and the frames to
            <path>.obj if the model has a single frame, or <path>_<frame>.obj otherwise.
        :param fmt: Export format. Only obj is supported.
        :param texture_dir: Directory the material's texture reference points into
        :param with_normals: Include vertex normals in the OBJ files
        :return: The paths of the files written, material first
        """
        if fmt is None:
            fmt = 'obj'
        if fmt[0] == '.':
            fmt = fmt[1:]
        if fmt.lower() != 'obj':
            raise ValueError(f'Unknown format {fmt}')

        material_name = path.name
        mtl_path = path.with_name(f'{material_name}.mtl')
        # every frame is decoded before anything is written so a bad frame table leaves no partial output
        objs = [(self.frame_path(path, i), mesh.as_obj(mtl_path.name, material_name, with_normals))
                for i, mesh in enumerate(self.meshes())]

        mtl_path.write_text(self.as_mtl(material_name, f'{texture_dir}/{material_name}{self.TEXTURE_EXTENSION}'))
        written = [mtl_path]
        for obj_path, obj in objs:
            obj_path.write_text(obj)
            written.append(obj_path)
        return written


def describe(model_path: str):
    model_path = Path(model_path)
    with model_path.open('rb') as f:
        model = Model.read(f, name=model_path.stem)

    header = model.header
    sync = 'random' if header.sync_type == SyncType.RAND else 'synchronized'
    print(f'{model_path}: version {header.version}, {header.num_verts} vertices, {header.num_triangles} triangles, '
          f'{header.num_frames} frames')
    scale = ' '.join(f'{c:g}' for c in header.scale)
    origin = ' '.join(f'{c:g}' for c in header.origin)
    print(f'\tscale ({scale}), origin ({origin}), radius {header.radius:g}')
    print(f'\tskin {header.skin_width}x{header.skin_height}, sync {sync}, flags {header.flags:#x}')
    for i, skin in enumerate(model.layout.skins):
        if skin.type == SkinType.SIMPLE:
            print(f'\tskin {i}: simple')
        else:
            print(f'\tskin {i}: group of {skin.num_images} images')
    for frame in model.frames():
        if frame.type == FrameType.SIMPLE:
            print(f'\tframe {frame.index}: {frame.name}')
        else:
            print(f'\tframe {frame.index}: {frame.name} (group of {frame.num_poses} poses)')


def export(model_path: str, target_dir: str | None, texture_dir: str = Model.TEXTURE_DIR,
           with_normals: bool = False) -> list[Path]:
    model_path = Path(model_path)
    target_dir = Path.cwd() if target_dir is None else Path(target_dir)
    with model_path.open('rb') as f:
        model = Model.read(f, name=model_path.stem)

    target_dir.mkdir(parents=True, exist_ok=True)
    paths = model.export(target_dir / model.name, texture_dir=texture_dir, with_normals=with_normals)
    for path in paths:
        print(f'{model_path} was exported to {path}')
    return paths


def main(args: list[str] = None):
    import argparse

    parser = argparse.ArgumentParser(description='Convert Quake alias models (.mdl) to Wavefront OBJ')
    parser.add_argument('-o', '--output', help='Directory to write the exported files to. Defaults to the current '
                        'directory.')
    parser.add_argument('-t', '--texture-dir', help='Directory the material should look for the model texture in',
                        default=Model.TEXTURE_DIR)
    parser.add_argument('-n', '--normals', help='Include vertex normals in the exported meshes',
                        action='store_true')
    parser.add_argument('-l', '--list', help="Print information about the model and its frames instead of "
                        'exporting it', action='store_true')
    parser.add_argument('model', help='The model file to convert')

    args = parser.parse_args(args)
    try:
        if args.list:
            describe(args.model)
        else:
            export(args.model, args.output, args.texture_dir, args.normals)
    except (OSError, EOFError, ValueError) as e:
        print(f'Failed to convert {args.model}: {e}', file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
