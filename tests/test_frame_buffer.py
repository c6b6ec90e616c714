import numpy as np
import pytest

from asciiplayer.frame_buffer import FrameBuffer


def test_starts_empty():
    buffer = FrameBuffer()
    assert (buffer.width, buffer.height) == (0, 0)
    assert not buffer.is_allocated


def test_reallocates_only_on_dimension_change():
    buffer = FrameBuffer()
    assert buffer.resize(4, 3) is True
    first = buffer.pixels
    assert first.shape == (3, 4, 4)

    assert buffer.resize(4, 3) is False
    assert buffer.pixels is first

    assert buffer.resize(2, 2) is True
    assert buffer.pixels is not first


def test_write_rgb_fills_alpha():
    buffer = FrameBuffer()
    buffer.resize(2, 1)
    buffer.write_rgb(np.array([[[10, 20, 30], [40, 50, 60]]], dtype=np.uint8))
    np.testing.assert_array_equal(buffer.pixels[0, 1], [40, 50, 60, 255])


def test_write_gray_replicates_channel():
    buffer = FrameBuffer()
    buffer.resize(1, 1)
    buffer.write_rgb(np.array([[77]], dtype=np.uint8))
    np.testing.assert_array_equal(buffer.pixels[0, 0], [77, 77, 77, 255])


def test_write_rejects_mismatched_size():
    buffer = FrameBuffer()
    buffer.resize(2, 2)
    with pytest.raises(ValueError):
        buffer.write_rgb(np.zeros((3, 3, 3), dtype=np.uint8))


def test_release_and_negative_sizes():
    buffer = FrameBuffer()
    buffer.resize(5, 5)
    buffer.release()
    assert (buffer.width, buffer.height) == (0, 0)
    with pytest.raises(ValueError):
        buffer.resize(-1, 2)
