from examgrader.utils.hashing import hash_bytes, hash_file
from examgrader.utils.images import detect_mime_type, read_dimensions

from conftest import make_png


def test_hash_is_stable_hex_sha256():
    digest = hash_bytes(b"worksheet")
    assert len(digest) == 64
    assert digest == hash_bytes(b"worksheet")
    assert int(digest, 16) >= 0


def test_hash_file_matches_hash_bytes(tmp_path):
    data = make_png((10, 20, 30))
    path = tmp_path / "paper.png"
    path.write_bytes(data)
    assert hash_file(path) == hash_bytes(data)


def test_one_byte_difference_changes_hash():
    data = make_png()
    assert hash_bytes(data) != hash_bytes(data + b"\x00")


def test_image_helpers_read_png():
    data = make_png(size=(30, 45))
    assert detect_mime_type(data) == "image/png"
    assert read_dimensions(data) == {"width": 30, "height": 45}


def test_image_helpers_fall_back_on_garbage():
    assert detect_mime_type(b"not an image") == "image/jpeg"
    assert read_dimensions(b"not an image") is None
