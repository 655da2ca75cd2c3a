from composer.engine.debounce import PropertyDebouncer


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_edits_inside_window_coalesce():
    clock = FakeClock()
    debouncer = PropertyDebouncer(clock)
    debouncer.submit("a", {"logoScale": 1.1}, 100)
    clock.now = 0.05
    debouncer.submit("a", {"logoScale": 1.2, "backgroundColor": "#ffffff"}, 100)

    clock.now = 0.12
    assert debouncer.due() == []  # window restarted by the second edit

    clock.now = 0.2
    assert debouncer.due() == [("a", {"logoScale": 1.2, "backgroundColor": "#ffffff"})]
    assert len(debouncer) == 0


def test_merged_order_follows_edits():
    debouncer = PropertyDebouncer(FakeClock())
    debouncer.submit("a", {"x": 1, "y": 1}, 0, now=0)
    debouncer.submit("a", {"x": 2}, 0, now=0)
    assert list(debouncer.pending("a")) == ["y", "x"]


def test_release_order_is_by_deadline():
    debouncer = PropertyDebouncer(FakeClock())
    debouncer.submit("slow", {"v": 1}, 100, now=0)
    debouncer.submit("fast", {"v": 2}, 10, now=0)
    released = debouncer.due(now=1)
    assert [item_id for item_id, _ in released] == ["fast", "slow"]


def test_zero_interval_is_due_immediately():
    debouncer = PropertyDebouncer(FakeClock())
    debouncer.submit("a", {"v": 1}, 0, now=5)
    assert debouncer.due(now=5) == [("a", {"v": 1})]


def test_flush_and_cancel():
    debouncer = PropertyDebouncer(FakeClock())
    debouncer.submit("a", {"v": 1}, 1000, now=0)
    debouncer.submit("b", {"v": 2}, 1000, now=0)
    assert debouncer.flush("a") == [("a", {"v": 1})]
    assert debouncer.flush("a") == []
    assert debouncer.cancel("b") is True
    assert debouncer.cancel("b") is False
    assert debouncer.flush() == []
