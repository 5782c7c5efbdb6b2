from lib.frame_cell import FrameDisplay, LatestFrameCell
from lib.pixel_buffer import PixelBuffer


def frame(v, ts=0.0):
    return PixelBuffer.filled(4, 4, (v, v, v), timestamp=ts)


def test_latest_frame_wins():
    cell = LatestFrameCell()
    assert cell.get() is None
    a, b = frame(1), frame(2)
    cell.put(a)
    cell.put(b)
    assert cell.get() is b
    assert cell.get() is b
    assert cell.dropped == 1
    assert cell.sequence == 2


def test_read_frames_are_not_dropped():
    cell = LatestFrameCell()
    for i in range(5):
        cell.put(frame(i))
        cell.get()
    assert cell.dropped == 0


def test_clear():
    cell = LatestFrameCell()
    cell.put(frame(1))
    cell.clear()
    assert cell.get() is None
    cell.put(frame(2))
    assert cell.dropped == 0


def test_freeze_holds_frame_while_cell_moves_on():
    cell = LatestFrameCell()
    display = FrameDisplay(cell)
    first = frame(10)
    cell.put(first)
    display.freeze()
    assert display.is_frozen
    cell.put(frame(20))
    cell.put(frame(30))
    assert display.current() is first
    display.unfreeze()
    assert not display.is_frozen
    assert display.current().data[0, 0, 0] == 30


def test_freeze_twice_keeps_first_frame():
    cell = LatestFrameCell()
    display = FrameDisplay(cell)
    first = frame(1)
    cell.put(first)
    display.set_frozen(True)
    cell.put(frame(2))
    display.set_frozen(True)
    assert display.current() is first


def test_freeze_without_frames():
    display = FrameDisplay(LatestFrameCell())
    display.freeze()
    assert display.current() is None


def test_sequence_counts_every_put():
    cell = LatestFrameCell()
    for i in range(3):
        cell.put(frame(i))
    cell.clear()
    cell.put(frame(9))
    assert cell.sequence == 4
    assert cell.dropped == 2
