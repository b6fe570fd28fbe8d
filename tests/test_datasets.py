import pytest

from orbslam.datasets import (
    load_kitti_monocular,
    load_kitti_stereo,
    load_tum_monocular,
    load_tum_rgbd,
)


def _write_times(folder, values):
    (folder / "times.txt").write_text("".join(f"{v}\n" for v in values))


def test_kitti_monocular_names_and_times(tmp_path):
    _write_times(tmp_path, ["0.000000e+00", "1.036662e-01", "2.072318e-01"])
    seq = load_kitti_monocular(tmp_path)
    assert seq.timestamps == pytest.approx([0.0, 0.1036662, 0.2072318])
    assert seq.images[0] == f"{tmp_path}/image_2/000000.png"
    assert seq.images[2] == f"{tmp_path}/image_2/000002.png"
    assert len(seq) == 3


def test_kitti_monocular_skips_blank_lines(tmp_path):
    (tmp_path / "times.txt").write_text("0.5\n\n1.5\n")
    seq = load_kitti_monocular(tmp_path)
    assert seq.timestamps == [0.5, 1.5]
    assert len(seq.images) == len(seq.timestamps)


def test_kitti_stereo_pairs(tmp_path):
    _write_times(tmp_path, ["0.0", "0.1"])
    seq = load_kitti_stereo(tmp_path)
    assert seq.left == [
        f"{tmp_path}/image_0/000000.png",
        f"{tmp_path}/image_0/000001.png",
    ]
    assert seq.right == [
        f"{tmp_path}/image_1/000000.png",
        f"{tmp_path}/image_1/000001.png",
    ]
    assert seq.timestamps == [0.0, 0.1]


def test_kitti_index_padding_beyond_six_digits_not_truncated(tmp_path):
    _write_times(tmp_path, [str(i) for i in range(12)])
    seq = load_kitti_stereo(tmp_path)
    assert seq.left[11].endswith("/image_0/000011.png")
    assert len(seq) == 12


def test_kitti_missing_times_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_kitti_monocular(tmp_path)


def test_kitti_bad_timestamp(tmp_path):
    (tmp_path / "times.txt").write_text("abc\n")
    with pytest.raises(ValueError):
        load_kitti_monocular(tmp_path)


def test_tum_monocular_skips_header(tmp_path):
    (tmp_path / "rgb.txt").write_text(
        "# color images\n# file: 'x.bag'\n# timestamp filename\n"
        "1305031102.175304 rgb/1305031102.175304.png\n"
        "1305031102.211214 rgb/1305031102.211214.png\n"
    )
    seq = load_tum_monocular(tmp_path)
    assert seq.timestamps == [1305031102.175304, 1305031102.211214]
    assert seq.images == [
        f"{tmp_path}/rgb/1305031102.175304.png",
        f"{tmp_path}/rgb/1305031102.211214.png",
    ]


def test_tum_monocular_header_only(tmp_path):
    (tmp_path / "rgb.txt").write_text("# a\n# b\n# c\n")
    seq = load_tum_monocular(tmp_path)
    assert len(seq) == 0


def test_tum_monocular_missing_name(tmp_path):
    (tmp_path / "rgb.txt").write_text("#\n#\n#\n1.0\n")
    with pytest.raises(ValueError):
        load_tum_monocular(tmp_path)


def test_tum_rgbd_association(tmp_path):
    path = tmp_path / "associations.txt"
    path.write_text(
        "1305031102.175304 rgb/1305031102.175304.png "
        "1305031102.160407 depth/1305031102.160407.png\n"
        "\n"
        "1305031102.211214 rgb/1305031102.211214.png "
        "1305031102.226738 depth/1305031102.226738.png\n"
    )
    seq = load_tum_rgbd(path)
    assert seq.rgb == ["rgb/1305031102.175304.png", "rgb/1305031102.211214.png"]
    assert seq.depth == [
        "depth/1305031102.160407.png",
        "depth/1305031102.226738.png",
    ]
    assert seq.timestamps == [1305031102.175304, 1305031102.211214]
    assert list(seq)[0] == (
        "rgb/1305031102.175304.png",
        "depth/1305031102.160407.png",
        1305031102.175304,
    )


def test_tum_rgbd_incomplete_line(tmp_path):
    path = tmp_path / "associations.txt"
    path.write_text("1.0 rgb/a.png 1.0\n")
    with pytest.raises(ValueError):
        load_tum_rgbd(path)


def test_tum_rgbd_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_tum_rgbd(tmp_path / "nothing.txt")