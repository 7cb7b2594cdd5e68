"""Tests for KeyObserverSet — coalesced observation of config keys."""

import pytest

from liveview import (
    ConfigStore,
    DispatchState,
    KeyObserverSet,
    MappedDisposable,
    TickScheduler,
    current_observer,
    normalise_keys,
)


def _host(values=None, **kwargs):
    ticks = TickScheduler()
    return ConfigStore(values, scheduler=ticks, **kwargs), ticks


class _Counter:
    def __init__(self):
        self.calls = 0
        self.args = []
        self.observers = []

    def __call__(self, *args):
        self.calls += 1
        self.args.append(args)
        self.observers.append(current_observer())


class TestConstruction:
    def test_starts_empty(self):
        config, _ = _host()
        s = KeyObserverSet(config)
        assert s.size == 0
        assert len(s) == 0
        assert s.callback is None
        assert isinstance(s.disposables, MappedDisposable)

    def test_accepts_callback(self):
        config, _ = _host()
        fn = lambda: True  # noqa: E731
        assert KeyObserverSet(config, fn).callback is fn

    def test_callback_assigned_later(self):
        config, _ = _host()
        s = KeyObserverSet(config)
        fn = lambda: True  # noqa: E731
        s.callback = fn
        assert s.callback is fn

    @pytest.mark.parametrize("bad", [{"value": 50}, 50, False, "redraw"])
    def test_rejects_non_callable(self, bad):
        config, _ = _host()
        with pytest.raises(TypeError, match="Callback argument is not a function"):
            KeyObserverSet(config, bad)

    def test_bad_assignment_keeps_previous_callback(self):
        config, _ = _host()
        fn = lambda: True  # noqa: E731
        s = KeyObserverSet(config, fn)
        with pytest.raises(TypeError):
            s.callback = 50
        assert s.callback is fn

    def test_initial_keys(self):
        config, _ = _host()
        s = KeyObserverSet(config, None, "a b", ["c"])
        assert sorted(s) == ["a", "b", "c"]
        assert config.observer_count() == 3


class TestNormalise:
    def test_flattens_and_splits(self):
        assert normalise_keys(["a b", ["c", ("d",)], " e  "]) == ["a", "b", "c", "d", "e"]

    def test_drops_blanks_and_none(self):
        assert normalise_keys(["", "   ", None, "a"]) == ["a"]

    def test_self_referential_list(self):
        keys = ["a"]
        keys.append(keys)
        assert normalise_keys(keys) == ["a"]

    def test_shared_nested_list_walked_once(self):
        inner = ["x"]
        assert normalise_keys([inner, [inner]]) == ["x"]

    def test_generator_of_lists(self):
        assert normalise_keys([k] for k in ["a", "b", "c", "d"]) == ["a", "b", "c", "d"]

    def test_map_of_tuples(self):
        config, _ = _host()
        s = KeyObserverSet(config).add(map(lambda k: (k,), ["x", "y", "z"]))
        assert s.size == 3
        assert config.observer_count() == 3

    def test_nested_generators(self):
        keys = normalise_keys(((f"{g}.{i}" for i in range(3)) for g in "ab"))
        assert keys == ["a.0", "a.1", "a.2", "b.0", "b.1", "b.2"]

    def test_numbers_are_coerced(self):
        assert normalise_keys([5, 2.5]) == ["5", "2.5"]

    def test_non_iterable_object(self):
        with pytest.raises(TypeError, match="'object' object is not iterable"):
            normalise_keys(object())

    @pytest.mark.parametrize(
        "args",
        [("a b",), (["a", "b"],), ("a", "b"), (" a  b ",), ({"a", "b"},)],
    )
    def test_argument_shapes_are_equivalent(self, args):
        config, _ = _host()
        s = KeyObserverSet(config).add(*args)
        assert sorted(s) == ["a", "b"]


class TestAddDelete:
    def test_add_subscribes_immediately(self):
        config, _ = _host({"editor.fontSize": 14})
        s = KeyObserverSet(config)
        assert s.add("editor.fontSize") is s
        assert s.has("editor.fontSize")
        assert "editor.fontSize" in s
        assert config.observer_count("editor.fontSize") == 1

    def test_adding_present_key_is_noop(self):
        config, ticks = _host()
        cb = _Counter()
        s = KeyObserverSet(config, cb, "a")
        ticks.tick()
        s.add("a", ["a"], "a a")
        assert s.size == 1
        assert config.observer_count("a") == 1
        ticks.tick()
        assert cb.calls == 1

    def test_delete(self):
        config, _ = _host()
        s = KeyObserverSet(config, None, "a b")
        assert s.delete("a") is s
        assert not s.has("a")
        assert s.size == 1
        assert config.observer_count("a") == 0

    def test_delete_absent_key(self):
        config, _ = _host()
        s = KeyObserverSet(config, None, "a")
        s.delete("zzz")
        assert s.size == 1

    def test_aliases(self):
        config, _ = _host()
        s = KeyObserverSet(config)
        s.observe("a b")
        assert s.size == 2
        s.unobserve(["a"])
        assert list(s) == ["b"]

    def test_add_is_not_transactional(self):
        config, _ = _host()
        s = KeyObserverSet(config)
        with pytest.raises(TypeError, match="not iterable"):
            s.add("a", object(), "b")
        assert s.has("a")
        assert not s.has("b")

    def test_clear(self):
        config, _ = _host()
        cb = _Counter()
        s = KeyObserverSet(config, cb, "a b c")
        old = s.disposables
        s.clear()
        assert s.size == 0
        assert not s.has("a")
        assert config.observer_count() == 0
        assert old.disposed
        assert s.disposables is not old
        assert s.callback is cb

    def test_clear_is_idempotent(self):
        config, _ = _host()
        s = KeyObserverSet(config)
        s.clear()
        s.clear()
        assert s.size == 0

    def test_usable_after_clear(self):
        config, ticks = _host()
        cb = _Counter()
        s = KeyObserverSet(config, cb, "a")
        s.clear()
        ticks.tick()
        s.add("b")
        assert config.observer_count("b") == 1
        config.set("b", 1)
        ticks.tick()
        assert cb.calls == 2


class TestCoalescing:
    def test_single_key_change(self):
        config, ticks = _host()
        cb = _Counter()
        s = KeyObserverSet(config, cb)
        s.add("x")
        config.set("x", 1)
        ticks.tick()
        assert cb.calls == 1

    def test_never_synchronous(self):
        config, ticks = _host()
        cb = _Counter()
        KeyObserverSet(config, cb, "x")
        config.set("x", 1)
        assert cb.calls == 0
        assert ticks.pending == 1

    def test_two_keys_one_call(self):
        config, ticks = _host()
        cb = _Counter()
        s = KeyObserverSet(config, cb)
        s.add("x", "y")
        config.set("x", 1)
        config.set("y", 1)
        ticks.tick()
        assert cb.calls == 1

    def test_bursts_are_separate(self):
        config, ticks = _host()
        cb = _Counter()
        s = KeyObserverSet(config, cb)
        s.add("x")
        ticks.tick()
        assert cb.calls == 1  # initial observation
        config.set("x", 1)
        config.set("x", 2)
        config.set("x", 3)
        ticks.tick()
        assert cb.calls == 2

    def test_changes_across_turns_before_dispatch(self):
        """Work queued ahead of the dispatch does not split the window."""
        config, ticks = _host(notify_on_observe=False)
        cb = _Counter()
        KeyObserverSet(config, cb, "x y")
        ticks.schedule(lambda: config.set("y", 1))
        config.set("x", 1)
        ticks.tick()
        assert cb.calls == 1
        assert ticks.pending == 0

    def test_one_pending_dispatch(self):
        config, ticks = _host(notify_on_observe=False)
        s = KeyObserverSet(config, _Counter(), "a b c")
        for key in ("a", "b", "c", "a"):
            config.set(key, key * 2)
        assert ticks.pending == 1
        assert s.state is DispatchState.SCHEDULED
        ticks.tick()
        assert s.state is DispatchState.IDLE

    def test_deleted_key_stays_silent(self):
        config, ticks = _host(notify_on_observe=False)
        cb = _Counter()
        s = KeyObserverSet(config, cb)
        s.add("x")
        s.delete("x")
        config.set("x", 1)
        ticks.tick()
        assert cb.calls == 0

    def test_dispatch_already_queued_survives_delete(self):
        config, ticks = _host()
        cb = _Counter()
        s = KeyObserverSet(config, cb, "x")
        s.delete("x")
        ticks.tick()
        assert cb.calls == 1

    def test_cleared_set_stops_notifying(self):
        config, ticks = _host(notify_on_observe=False)
        cb = _Counter()
        s = KeyObserverSet(config, cb, "a b")
        s.clear()
        config.update({"a": 1, "b": 2})
        ticks.tick()
        assert cb.calls == 0

    def test_callback_receives_no_arguments(self):
        config, ticks = _host()
        cb = _Counter()
        s = KeyObserverSet(config, cb, "x")
        ticks.tick()
        assert cb.args == [()]
        assert cb.observers == [s]
        assert current_observer() is None

    def test_silent_without_callback(self):
        config, ticks = _host()
        KeyObserverSet(config, None, "x")
        config.set("x", 1)
        assert ticks.pending == 0

    def test_callback_removed_before_dispatch(self):
        config, ticks = _host()
        cb = _Counter()
        s = KeyObserverSet(config, cb, "x")
        s.callback = None
        ticks.tick()
        assert cb.calls == 0
        assert s.state is DispatchState.IDLE

    def test_callback_swapped_before_dispatch(self):
        config, ticks = _host()
        first, second = _Counter(), _Counter()
        s = KeyObserverSet(config, first, "x")
        s.callback = second
        ticks.tick()
        assert (first.calls, second.calls) == (0, 1)

    def test_change_from_inside_callback_opens_new_window(self):
        config, ticks = _host({"x": 0})
        calls = []

        def bump():
            calls.append(config.get("x"))
            if config.get("x") < 1:
                config.set("x", 1)

        KeyObserverSet(config, bump, "x")
        ticks.tick()
        assert calls == [0]
        assert ticks.pending == 1
        ticks.tick()
        assert calls == [0, 1]
        assert ticks.pending == 0

    def test_repr(self):
        config, _ = _host(notify_on_observe=False)
        s = KeyObserverSet(config, None, "a")
        assert repr(s) == "KeyObserverSet(['a'], idle)"
