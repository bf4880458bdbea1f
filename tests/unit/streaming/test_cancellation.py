"""Unit tests for StreamHandle and CancellationController."""


class TestStreamHandle:
    """Handle lifecycle."""

    def test_new_handle_is_active(self):
        from tradechat.streaming.cancellation import StreamHandle

        handle = StreamHandle()
        assert handle.active
        assert not handle.cancelled
        assert not handle.finished

    def test_ids_are_unique(self):
        from tradechat.streaming.cancellation import StreamHandle

        assert StreamHandle().id != StreamHandle().id

    def test_cancel_is_idempotent(self, caplog):
        import logging

        from tradechat.streaming.cancellation import StreamHandle

        handle = StreamHandle()
        with caplog.at_level(logging.INFO, logger="tradechat"):
            handle.cancel()
            handle.cancel()
            handle.cancel()
        assert handle.cancelled
        assert not handle.active
        assert caplog.text.count(f"Stream {handle.id} cancelled") == 1

    def test_cancel_after_finish_is_a_no_op(self):
        from tradechat.streaming.cancellation import StreamHandle

        handle = StreamHandle()
        handle.finish()
        handle.cancel()
        assert not handle.cancelled
        assert handle.finished

    def test_repr_shows_state(self):
        from tradechat.streaming.cancellation import StreamHandle

        handle = StreamHandle()
        assert "active" in repr(handle)
        handle.cancel()
        assert "cancelled" in repr(handle)


class TestCancellationController:
    """At most one active stream."""

    def test_start_returns_active_handle(self):
        from tradechat.streaming.cancellation import CancellationController

        controller = CancellationController()
        handle = controller.start()
        assert controller.active is handle

    def test_start_supersedes_previous_stream(self):
        from tradechat.streaming.cancellation import CancellationController

        controller = CancellationController()
        first = controller.start()
        second = controller.start()
        assert first.cancelled
        assert second.active
        assert controller.active is second

    def test_start_after_complete_does_not_cancel(self):
        from tradechat.streaming.cancellation import CancellationController

        controller = CancellationController()
        first = controller.start()
        controller.complete(first)
        controller.start()
        assert not first.cancelled
        assert first.finished

    def test_cancel_targets_active_handle(self):
        from tradechat.streaming.cancellation import CancellationController

        controller = CancellationController()
        handle = controller.start()
        controller.cancel()
        controller.cancel()
        assert handle.cancelled
        assert controller.active is None

    def test_cancel_without_stream_is_a_no_op(self):
        from tradechat.streaming.cancellation import CancellationController

        CancellationController().cancel()

    def test_complete_of_superseded_handle_keeps_new_one(self):
        from tradechat.streaming.cancellation import CancellationController

        controller = CancellationController()
        first = controller.start()
        second = controller.start()
        controller.complete(first)
        assert controller.active is second
