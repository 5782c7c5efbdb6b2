import threading
import time
from types import SimpleNamespace

import numpy as np

from lib.frame_cell import FrameDisplay, LatestFrameCell
from lib.integration import IntegrationEngine
from lib.pixel_buffer import PixelBuffer
from ui import pipeline


def make_gui(level=1):
    cell = LatestFrameCell()
    return SimpleNamespace(
        engine=IntegrationEngine(4, 4, level),
        frame_cell=cell,
        display=FrameDisplay(cell),
        new_frame_ready=threading.Event(),
        frame_count=0,
        fps=0.0,
        _fps_count=0,
        _fps_time=time.time(),
    )


def frame(v):
    return PixelBuffer.filled(4, 4, (v, v, v))


def test_push_frame_integrates_and_signals():
    gui = make_gui(level=2)
    pipeline.push_frame(gui, frame(10))
    pipeline.push_frame(gui, frame(30))
    assert gui.new_frame_ready.is_set()
    assert gui.frame_count == 2
    assert np.all(gui.frame_cell.get().data[..., :3] == 20)


def test_push_frame_bypass_passes_frame_through():
    gui = make_gui(level=1)
    f = frame(42)
    pipeline.push_frame(gui, f)
    assert gui.display.current() is f


def test_fps_is_measured_over_a_second():
    gui = make_gui()
    gui._fps_time = time.time() - 2.0
    pipeline.push_frame(gui, frame(1))
    assert gui.fps > 0
    assert gui._fps_count == 0


def test_clear_frame_buffer():
    gui = make_gui(level=4)
    pipeline.push_frame(gui, frame(100))
    pipeline.clear_frame_buffer(gui)
    assert gui.engine.fill_count == 0
    assert gui.frame_cell.get() is None
    assert not gui.new_frame_ready.is_set()


def test_stats_text():
    gui = make_gui(level=4)
    pipeline.push_frame(gui, frame(1))
    pipeline.push_frame(gui, frame(1))
    text = pipeline.stats_text(gui)
    assert "Frames: 2" in text
    assert "Buffer: 2/4" in text
    assert "Dropped: 1" in text
    gui.display.freeze()
    assert "FROZEN" in pipeline.stats_text(gui)
