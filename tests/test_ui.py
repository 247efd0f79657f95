"""
Tests for the UI thread executor, display surfaces and result formatting.
"""

import threading

import numpy as np
import pytest

from models.classification import Category, Classifications
from models.config import DisplayConfig
from ui.display import DisplaySurface, HeadlessDisplay, OpenCVDisplay, TextView, WrongThreadError, create_display
from ui.formatting import format_categories, format_percent, format_results
from ui.main_thread import MainThreadExecutor
from ui.strings import get_string


def in_thread(fn):
    """Run fn on a worker thread and return what it raised, if anything."""
    errors = []

    def target():
        try:
            fn()
        except Exception as e:
            errors.append(e)

    thread = threading.Thread(target=target)
    thread.start()
    thread.join(timeout=5)
    return errors[0] if errors else None


class TestMainThreadExecutor:
    def test_posted_tasks_run_on_owner_thread(self):
        executor = MainThreadExecutor()
        ran_on = []

        in_thread(lambda: executor.post(lambda: ran_on.append(threading.current_thread())))
        assert ran_on == []

        assert executor.run_pending() == 1
        assert ran_on == [threading.current_thread()]

    def test_tasks_run_in_post_order(self):
        executor = MainThreadExecutor()
        order = []
        for i in range(3):
            executor.post(lambda i=i: order.append(i))

        executor.run_pending()

        assert order == [0, 1, 2]

    def test_run_pending_off_owner_thread_raises(self):
        executor = MainThreadExecutor()
        error = in_thread(executor.run_pending)
        assert isinstance(error, RuntimeError)

    def test_failing_task_does_not_stop_queue(self):
        executor = MainThreadExecutor()
        ran = []

        def boom():
            raise ValueError("boom")

        executor.post(boom)
        executor.post(lambda: ran.append(True))

        assert executor.run_pending() == 2
        assert ran == [True]

    def test_submit_returns_future(self):
        executor = MainThreadExecutor()
        future = executor.submit(lambda a, b: a + b, 2, 3)
        executor.run_pending()
        assert future.result(timeout=1) == 5

    def test_run_pending_waits_for_first_task(self):
        executor = MainThreadExecutor()
        timer = threading.Timer(0.05, lambda: executor.post(lambda: None))
        timer.start()

        assert executor.run_pending(timeout=2.0) == 1

    def test_post_after_shutdown_is_dropped(self):
        executor = MainThreadExecutor()
        executor.shutdown()
        executor.post(lambda: None)

        assert executor.run_pending() == 0
        with pytest.raises(RuntimeError):
            executor.submit(lambda: None)

    def test_shutdown_cancel_futures_drains_queue(self):
        executor = MainThreadExecutor()
        executor.post(lambda: None)
        executor.shutdown(cancel_futures=True)
        assert executor.run_pending() == 0


class TestDisplay:
    def test_text_view_rejects_other_threads(self):
        executor = MainThreadExecutor()
        view = TextView("tv_result", executor.is_ui_thread)

        def write():
            view.text = "cat 90%"

        error = in_thread(write)

        assert isinstance(error, WrongThreadError)
        assert view.text == ""

        write()
        assert view.text == "cat 90%"

    def test_toast_requires_ui_thread(self):
        executor = MainThreadExecutor()
        display = DisplaySurface(executor.is_ui_thread)

        error = in_thread(lambda: display.show_toast("hi"))

        assert isinstance(error, WrongThreadError)

    def test_toasts_expire(self):
        now = [0.0]
        display = DisplaySurface(lambda: True, DisplayConfig(toast_duration=2.0), clock=lambda: now[0])

        display.show_toast("first")
        now[0] = 1.0
        display.show_toast("second")
        assert display.active_toasts() == ["first", "second"]

        now[0] = 2.5
        assert display.active_toasts() == ["second"]

    def test_preview_frame_from_any_thread(self):
        display = DisplaySurface(lambda: False)
        image = np.zeros((2, 2, 3), dtype=np.uint8)

        in_thread(lambda: display.set_preview_frame(image))

        assert display.get_preview_frame() is image

    def test_release(self):
        display = DisplaySurface(lambda: True)
        display.set_preview_frame(np.zeros((2, 2, 3), dtype=np.uint8))

        display.release()

        assert display.is_released
        assert display.get_preview_frame() is None

    def test_headless_render_returns_no_key(self):
        display = HeadlessDisplay(lambda: True)
        display.tv_result.text = "cat 90%"
        display.tv_inference_time.text = "12 ms"
        assert display.render() is None

    def test_create_display(self):
        assert isinstance(create_display(lambda: True, DisplayConfig(headless=True)), HeadlessDisplay)
        assert isinstance(create_display(lambda: True, DisplayConfig(headless=False)), OpenCVDisplay)


class TestFormatting:
    def test_sorted_descending_with_percentages(self):
        categories = [Category(0.82, "A"), Category(0.05, "B"), Category(0.13, "C")]
        assert format_categories(categories) == "A 82%\nC 13%\nB 5%"

    @pytest.mark.parametrize("score, expected", [
        (0.0, "0%"),
        (0.5, "50%"),
        (0.994, "99%"),
        (1.0, "100%"),
    ])
    def test_format_percent(self, score, expected):
        assert format_percent(score) == expected

    def test_format_results(self):
        results = [Classifications([Category(0.6, "tabby"), Category(0.3, "tiger cat")])]
        assert format_results(results, 23) == ("tabby 60%\ntiger cat 30%", "23 ms")

    def test_only_first_head_is_shown(self):
        results = [
            Classifications([Category(0.6, "first")], head_index=0),
            Classifications([Category(0.9, "second")], head_index=1),
        ]
        assert format_results(results, 5)[0] == "first 60%"

    @pytest.mark.parametrize("results", [
        None,
        [],
        [Classifications([])],
    ])
    def test_missing_results_clear_both_fields(self, results):
        assert format_results(results, 40) == ("", "")


class TestStrings:
    def test_localized(self):
        assert get_string("camera_start_failed", "en") == "Failed to start the camera."
        assert get_string("camera_start_failed", "id") == "Gagal memunculkan kamera."

    def test_unknown_locale_falls_back(self):
        assert get_string("paused", "xx") == "Paused"
