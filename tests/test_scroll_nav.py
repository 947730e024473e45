"""Tests for the viewport model: tail-follow and navigation."""

from textual.strip import Strip

from convo_tui.tui.viewport import Viewport


def _lines(n):
    return [Strip.blank(10) for _ in range(n)]


def test_following_viewport_pins_to_bottom():
    vp = Viewport(height=20)
    vp.apply_render(_lines(100))
    assert vp.offset == 80
    vp.apply_render(_lines(120))
    assert vp.offset == 100
    assert vp.at_bottom


def test_scrolled_up_viewport_keeps_offset_when_content_grows():
    vp = Viewport(height=20)
    vp.apply_render(_lines(100))
    vp.scroll_to(10)
    assert vp.tail is False
    vp.apply_render(_lines(120))
    assert vp.offset == 10


def test_scrolled_up_viewport_clamps_when_content_shrinks():
    vp = Viewport(height=24)
    vp.apply_render(_lines(100))
    vp.scroll_to(60)
    vp.apply_render(_lines(40))
    assert vp.offset == 16
    assert len(vp.visible()) == 24


def test_shrink_that_still_fits_keeps_offset():
    vp = Viewport(height=24)
    vp.apply_render(_lines(100))
    vp.scroll_to(10)
    vp.apply_render(_lines(50))
    assert vp.offset == 10


def test_scrolling_back_to_bottom_resumes_follow():
    vp = Viewport(height=20)
    vp.apply_render(_lines(100))
    vp.page_up()
    assert not vp.tail
    vp.goto_bottom()
    assert vp.tail
    vp.apply_render(_lines(130))
    assert vp.offset == 110


def test_navigation_clamps():
    vp = Viewport(height=10)
    vp.apply_render(_lines(35))
    vp.goto_top()
    vp.page_up()
    assert vp.offset == 0
    vp.half_page_down()
    assert vp.offset == 5
    vp.page_down()
    vp.page_down()
    vp.page_down()
    assert vp.offset == 25
    vp.scroll_by(-3)
    assert vp.offset == 22
    assert len(vp.visible()) == 10


def test_scroll_to_message_stops_tail():
    vp = Viewport(height=10)
    vp.apply_render(_lines(50), {"msg_001": 1, "msg_002": 30})
    assert vp.scroll_to_message("msg_002") is True
    assert vp.offset == 30
    assert vp.tail is False
    assert vp.scroll_to_message("msg_404") is False


def test_short_buffer_never_scrolls():
    vp = Viewport(height=30)
    vp.apply_render(_lines(5))
    assert vp.offset == 0
    assert vp.at_bottom
