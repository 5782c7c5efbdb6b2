"""
Frame pipeline: push_frame (integration, latest-frame cell, repaint signal), clear_frame_buffer, stats line.
All functions take the GUI instance. Used by gui.py and AppAPI.
"""

import time


def push_frame(gui, frame):
    """
    Run one captured frame through the integration engine and publish the result.
    Called on the acquisition thread; the render loop picks the frame up from gui.frame_cell.
    """
    out = gui.engine.process(frame)
    gui.frame_cell.put(out)

    gui.frame_count += 1
    now = time.time()
    gui._fps_count += 1
    dt = now - gui._fps_time
    if dt >= 1.0:
        gui.fps = gui._fps_count / dt
        gui._fps_count = 0
        gui._fps_time = now

    gui.new_frame_ready.set()


def clear_frame_buffer(gui):
    """Restart the integration window and forget the latest frame (camera or format change)."""
    gui.engine.reset()
    gui.frame_cell.clear()
    gui.new_frame_ready.clear()


def stats_text(gui) -> str:
    """Frames, FPS, integration fill k/N and frames the renderer never saw."""
    engine = gui.engine
    parts = [
        f"Frames: {gui.frame_count}",
        f"FPS: {gui.fps:.1f}",
        f"Buffer: {engine.fill_count}/{engine.level}",
        f"Dropped: {gui.frame_cell.dropped}",
    ]
    if gui.display.is_frozen:
        parts.append("FROZEN")
    return "  |  ".join(parts)
