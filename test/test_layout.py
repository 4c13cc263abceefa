import struct

import pytest

from mdl_fixtures import build_mdl, group_frame, group_skin, simple_frame, simple_skin, triangle_model
from qmdl.file import TruncatedInput
from qmdl.layout import HEADER_SIZE, FrameType, MalformedCounts, SkinType, walk


def test_header():
    layout = walk(build_mdl([(0, 1, 1)], [], [simple_frame([(1, 2, 3, 4)])], scale=(0.5, 1., 2.),
                            origin=(-1., 0., 10.)))
    header = layout.header
    assert HEADER_SIZE == 84
    assert header.ident == b'IDPO'
    assert header.version == 6
    assert header.scale == (0.5, 1., 2.)
    assert header.origin == (-1., 0., 10.)
    assert header.num_skins == 1
    assert (header.skin_width, header.skin_height) == (8, 4)
    assert header.num_verts == 1
    assert header.num_triangles == 0
    assert header.num_frames == 1


def test_simple_skin_advance():
    data = build_mdl([(0, 5, 3), (1, 7, 1)], [(1, (0, 1, 1))], [simple_frame([(0, 0, 0, 0)] * 2)],
                     [simple_skin()])
    layout = walk(data)
    skin = layout.skins[0]
    assert skin.type == SkinType.SIMPLE
    assert skin.offset == HEADER_SIZE
    assert skin.size == 4 + 8 * 4
    assert layout.texcoords[0].tolist() == (0, 5, 3)
    assert layout.texcoords[1].tolist() == (1, 7, 1)


def test_group_skin_advance():
    data = build_mdl([(0, 5, 3), (1, 7, 1)], [(1, (0, 1, 1))], [simple_frame([(0, 0, 0, 0)] * 2)],
                     [group_skin([0.25, 0.5, 0.75])])
    layout = walk(data)
    skin = layout.skins[0]
    assert skin.type == SkinType.GROUP
    assert skin.num_images == 3
    assert skin.durations == (0.25, 0.5, 0.75)
    assert skin.size == 8 + 3 * 4 + 3 * 8 * 4
    assert layout.texcoords[0].tolist() == (0, 5, 3)
    assert layout.texcoords[1].tolist() == (1, 7, 1)


def test_mixed_skins():
    data = build_mdl([(0, 5, 3)], [], [simple_frame([(0, 0, 0, 0)])],
                     [simple_skin(), group_skin([0.5, 0.5]), simple_skin()])
    layout = walk(data)
    assert [skin.num_images for skin in layout.skins] == [1, 2, 1]
    assert layout.skins[1].offset == layout.skins[0].offset + layout.skins[0].size
    assert layout.skins[2].offset == layout.skins[1].offset + layout.skins[1].size
    assert layout.texcoords[0].tolist() == (0, 5, 3)


def test_no_skins():
    layout = walk(build_mdl([(0, 5, 3)], [], [simple_frame([(0, 0, 0, 0)])], []))
    assert layout.skins == ()
    assert layout.texcoords[0].tolist() == (0, 5, 3)


def test_triangles():
    layout = walk(build_mdl([(0, 0, 0)] * 3, [(1, (0, 1, 2)), (0, (2, 1, 0))], [simple_frame([(0, 0, 0, 0)] * 3)]))
    assert layout.triangles['faces_front'].tolist() == [1, 0]
    assert layout.triangles['vertices'].tolist() == [[0, 1, 2], [2, 1, 0]]


def test_frames():
    layout = walk(triangle_model(3))
    frames = list(layout.iter_frames())
    assert [frame.index for frame in frames] == [0, 1, 2]
    assert [frame.name for frame in frames] == ['pose0', 'pose1', 'pose2']
    assert frames[0].offset == layout.frame_table_offset
    for frame in frames:
        assert frame.type == FrameType.SIMPLE
        assert frame.size == 4 + 8 + 16 + 3 * 4
    assert frames[1].offset == frames[0].offset + frames[0].size
    assert frames[2].vertices['v'].tolist() == [[2, 0, 0], [0, 2, 0], [0, 0, 2]]
    assert frames[2].vertices['normal'].tolist() == [0, 1, 2]
    assert frames[2].offset + frames[2].size == len(layout.buffer)


def test_first_frame_pose():
    layout = walk(build_mdl([(0, 0, 0)], [], [simple_frame([(10, 20, 30, 5)], 'first'),
                                               simple_frame([(40, 50, 60, 6)], 'second')]))
    first = next(layout.iter_frames())
    assert first.name == 'first'
    assert first.vertices[0]['v'].tolist() == [10, 20, 30]


def test_frame_group():
    poses = [([(1, 1, 1, 0), (2, 2, 2, 0)], 'walk1'), ([(3, 3, 3, 0), (4, 4, 4, 0)], 'walk2')]
    data = build_mdl([(0, 0, 0)] * 2, [], [group_frame(poses, [0.5, 1.]), simple_frame([(9, 9, 9, 0)] * 2, 'stand')])
    layout = walk(data)
    group, stand = layout.iter_frames()
    assert group.type == FrameType.GROUP
    assert group.num_poses == 2
    assert group.intervals == (0.5, 1.)
    assert group.name == 'walk1'
    assert group.bounds_min['v'].tolist() == [1, 1, 1]
    assert group.bounds_max['v'].tolist() == [4, 4, 4]
    assert group.vertices['v'].tolist() == [[1, 1, 1], [2, 2, 2]]
    assert group.size == 4 + 4 + 8 + 2 * 4 + 2 * (8 + 16 + 2 * 4)
    assert stand.name == 'stand'
    assert stand.vertices['v'].tolist() == [[9, 9, 9], [9, 9, 9]]


def test_frame_spans():
    layout = walk(triangle_model(3))
    spans = layout.frame_spans()
    assert len(spans) == 3
    for i, (offset, size) in enumerate(spans):
        frame = layout.frame_at(offset, i)
        assert frame.size == size
        assert frame.name == f'pose{i}'


def test_bad_ident():
    with pytest.raises(ValueError, match='identifier'):
        walk(build_mdl([(0, 0, 0)], [], [simple_frame([(0, 0, 0, 0)])], ident=b'IDP2'))


def test_bad_version():
    with pytest.raises(ValueError, match='version'):
        walk(build_mdl([(0, 0, 0)], [], [simple_frame([(0, 0, 0, 0)])], version=8))


def test_negative_count():
    with pytest.raises(MalformedCounts):
        walk(build_mdl([], [], [simple_frame([])], num_verts=-1))


def test_no_frames():
    with pytest.raises(MalformedCounts):
        walk(build_mdl([(0, 0, 0)], [], []))


def test_zero_skin_size():
    with pytest.raises(MalformedCounts):
        walk(build_mdl([(0, 0, 0)], [], [simple_frame([(0, 0, 0, 0)])], [], skin_width=0))


def test_empty_skin_group():
    empty_group = struct.pack('<ii', 1, 0)
    with pytest.raises(MalformedCounts):
        walk(build_mdl([(0, 0, 0)], [], [simple_frame([(0, 0, 0, 0)])], [empty_group]))


def test_empty_frame_group():
    empty_group = struct.pack('<ii', 1, 0) + bytes(8)
    layout = walk(build_mdl([(0, 0, 0)], [], [empty_group]))
    with pytest.raises(MalformedCounts):
        list(layout.iter_frames())


def test_triangle_index_out_of_range():
    with pytest.raises(MalformedCounts):
        walk(build_mdl([(0, 0, 0)] * 2, [(1, (0, 1, 2))], [simple_frame([(0, 0, 0, 0)] * 2)]))


@pytest.mark.parametrize('data', [
    triangle_model(1),
    triangle_model(3),
    build_mdl([(1, 0, 0), (0, 1, 1)], [(0, (0, 1, 1))],
              [group_frame([([(1, 1, 1, 0)] * 2, 'a'), ([(2, 2, 2, 0)] * 2, 'b')]), simple_frame([(0, 0, 0, 0)] * 2)],
              [group_skin([0.1, 0.2, 0.3]), simple_skin()]),
])
def test_truncation(data):
    # sanity check that the complete model parses
    list(walk(data).iter_frames())
    for end in range(len(data)):
        with pytest.raises(TruncatedInput):
            list(walk(data[:end]).iter_frames())
