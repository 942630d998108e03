import logging

import pytest
from unittest.mock import Mock

from RadioStore import Item, PathError, Store, ValidationError, rsLog
from RadioStore.jacobiRadio import DEFAULT_STATE, default_state


# ======================================================================================================================
# PART 1: Reading and writing
# ======================================================================================================================
class TestGetSet:
    """
    Path based get/set on the current snapshot.
    """

    def test_get_defaults(self, store):
        assert store.get('system.n') == 3
        assert store.get('audio.volume') == 50
        assert store.get('system.x') == [1.0, 2.0, 2.0]

    def test_get_missing_returns_default(self, store):
        assert store.get('nonexistent.path') is None
        assert store.get('nonexistent.path', 'fallback') == 'fallback'

    def test_get_never_raises_on_malformed_paths(self, store):
        assert store.get('') is None
        assert store.get('a..b', 'fallback') == 'fallback'
        assert store.get('audio.²', 'fallback') == 'fallback'
        assert store.get(['audio', 'volume'], 'fallback') == 'fallback'

    def test_round_trip(self, store):
        for path, value in (('system.n', 5), ('display.theme', 'modern'), ('audio.isMuted', True),
                            ('cache.lastMaxError', 0.125), ('new.branch.leaf', 'created')):
            store.set(path, value)
            assert store.get(path) == value

    def test_set_list_element(self, store):
        """set('system.x[0]', 5) on [1, 2, 3] gives [5, 2, 3]."""
        store.set('system.x', [1, 2, 3])
        store.set('system.x[0]', 5)
        assert store.get('system.x') == [5, 2, 3]
        assert store.get('system.x[1]') == 2
        assert store.get('system.x[2]') == 3

    def test_set_creates_structure(self, store):
        store.set('history.runs[1].iterations', 12)
        assert store.get('history.runs') == [None, {'iterations': 12}]

    def test_path_error_leaves_state_untouched(self, store):
        before = store.get_state()
        version = store.version
        with pytest.raises(PathError):
            store.set('audio.volume.level', 3)
        with pytest.raises(PathError):
            store.set('a..b', 3)
        assert store.get_state() is before
        assert store.version == version

    def test_value_is_cloned_on_the_way_in(self, store):
        guess = [0.0, 0.0, 0.0]
        store.set('system.initialGuess', guess)
        guess[0] = 99
        assert store.get('system.initialGuess') == [0.0, 0.0, 0.0]

    def test_item_assignment_syntax(self, store):
        store['audio.volume'] = 65
        assert store.get('audio.volume') == 65
        assert isinstance(store['audio.volume'], Item)

    def test_unicode_digit_segment_is_a_plain_key(self, store):
        store.set('audio.²', 1)
        assert store.get('audio.²') == 1
        assert store.get('audio.volume') == 50

    def test_all_digit_map_keys(self, recorder):
        store = Store({'codes': {'404': 'not found'}})
        store.subscribe('codes.*', recorder)

        assert store.get('codes.404') == 'not found'
        store.set('codes.404', 'gone')
        store.batch({'codes.500': 'error'})

        assert store.get_state() == {'codes': {'404': 'gone', '500': 'error'}}
        assert recorder.calls == [('gone', 'not found', 'codes.404'), ('error', None, 'codes.500')]

    def test_empty_store(self):
        store = Store()
        assert store.get_state() == {}
        store.set('a', 1)
        assert store.get_state() == {'a': 1}


# ======================================================================================================================
# PART 2: Snapshots
# ======================================================================================================================
class TestSnapshots:
    """
    A published snapshot is never mutated; a write publishes a new one.
    """

    def test_old_snapshot_is_untouched(self, store):
        before = store.get_state()
        store.set('system.n', 5)
        after = store.get_state()

        assert after is not before
        assert before['system']['n'] == 3
        assert after['system']['n'] == 5

    def test_unrelated_subtrees_equal_but_distinct(self, store):
        before = store.get_state()
        store.set('system.n', 5)
        after = store.get_state()

        assert after['audio'] == before['audio']
        assert after['audio'] is not before['audio']
        assert after['display']['visibility'] == before['display']['visibility']
        assert after['display']['visibility'] is not before['display']['visibility']

    def test_returned_values_stay_valid(self, store):
        x = store.get('system.x')
        store.set('system.x[0]', 9.0)
        assert x == [1.0, 2.0, 2.0]
        assert store.get('system.x') == [9.0, 2.0, 2.0]

    def test_initial_state_is_cloned(self):
        initial = default_state()
        store = Store(initial)
        initial['audio']['volume'] = 0
        assert store.get('audio.volume') == 50

    def test_version_counts_transitions(self, store):
        assert store.version == 0
        store.set('a', 1)
        store.set('a', 2, silent=True)
        store.batch({'b': 1, 'c': 2})
        assert store.version == 3

    def test_default_state_is_never_touched(self, store):
        store.set('system.A[0][0]', 100)
        store.reset('system', DEFAULT_STATE['system'])
        store.set('system.A[0][0]', 200)
        assert DEFAULT_STATE['system']['A'][0][0] == 4


class TestStructuralSharing:
    """
    With structural_sharing=True only the ancestors of the written path are copied.
    """

    @pytest.fixture
    def shared(self):
        return Store(default_state(), structural_sharing=True)

    def test_shares_untouched_subtrees(self, shared):
        before = shared.get_state()
        shared.set('system.n', 5)
        after = shared.get_state()

        assert after['audio'] is before['audio']
        assert after['system'] is not before['system']
        assert after['system']['A'] is before['system']['A']
        assert before['system']['n'] == 3
        assert after['system']['n'] == 5

    def test_list_writes(self, shared):
        before = shared.get_state()
        shared.set('system.x[0]', 5)
        assert shared.get('system.x') == [5, 2.0, 2.0]
        assert before['system']['x'] == [1.0, 2.0, 2.0]

    def test_batch(self, shared, recorder):
        before = shared.get_state()
        shared.subscribe('*', recorder)
        shared.batch({'system.n': 4, 'audio.volume': 10})
        assert before['system']['n'] == 3
        assert before['audio']['volume'] == 50
        assert shared.get('system.n') == 4
        assert shared.get('audio.volume') == 10
        assert shared.get_state()['display'] is before['display']
        assert recorder.calls == [(4, 3, 'system.n'), (10, 50, 'audio.volume')]

    def test_all_digit_map_keys(self):
        shared = Store({'codes': {'404': 'not found'}, 'other': {}}, structural_sharing=True)
        before = shared.get_state()
        shared.set('codes.404', 'gone')
        assert shared.get('codes.404') == 'gone'
        assert before['codes'] == {'404': 'not found'}
        assert shared.get_state()['other'] is before['other']

    def test_failed_write_publishes_nothing(self, shared):
        before = shared.get_state()
        with pytest.raises(PathError):
            shared.set('audio.volume.x', 1)
        assert shared.get_state() is before


# ======================================================================================================================
# PART 3: Subscriptions
# ======================================================================================================================
class TestSubscribe:
    def test_concrete_volume_scenario(self, store):
        callback = Mock()
        store.subscribe('audio.volume', callback)
        store.set('audio.volume', 80)
        callback.assert_called_once_with(80, 50, 'audio.volume')
        assert store.get('audio.volume') == 80

    def test_wildcard_subscription(self, store):
        callback = Mock()
        store.subscribe('system.*', callback)

        store.set('system.n', 5)
        store.set('system.x', [1, 2, 3])
        store.set('audio.volume', 5)

        assert callback.call_count == 2

    def test_global_wildcard(self, store):
        callback = Mock()
        store.subscribe('*', callback)
        store.set('system.n', 4)
        store.set('audio.volume', 50)
        assert callback.call_count == 2

    def test_exact_pattern_ignores_children(self, store):
        callback = Mock()
        store.subscribe('system', callback)
        store.set('system.n', 4)
        callback.assert_not_called()

    def test_old_value_of_new_path_is_none(self, store, recorder):
        store.subscribe('*', recorder)
        store.set('brand.new', 1)
        assert recorder.calls == [(1, None, 'brand.new')]

    def test_delivery_is_synchronous(self, store):
        seen = []
        store.subscribe('audio.volume', lambda new, old, path: seen.append(store.get(path)))
        store.set('audio.volume', 70)
        assert seen == [70]

    def test_disposer(self, store):
        callback = Mock()
        dispose = store.subscribe('audio.volume', callback)
        store.set('audio.volume', 70)
        dispose()
        dispose()
        store.set('audio.volume', 80)
        assert callback.call_count == 1
        assert store.subscriber_count == 0

    def test_silent_suppression(self, store):
        callback = Mock()
        store.subscribe('audio.volume', callback)

        store.set('audio.volume', 10, silent=True)
        assert store.get('audio.volume') == 10
        callback.assert_not_called()

        store.set('audio.volume', 20)
        callback.assert_called_once_with(20, 10, 'audio.volume')

    def test_pattern_must_be_a_string(self, store):
        callback = Mock()
        with pytest.raises(TypeError, match='pattern must be a str'):
            store.subscribe(None, callback)
        with pytest.raises(TypeError, match='callback must be callable'):
            store.subscribe('*', 'not a function')

        store.set('audio.volume', 30)
        assert store.subscriber_count == 0
        callback.assert_not_called()

    def test_failing_subscriber_does_not_stop_delivery(self, store, caplog):
        after = Mock()
        store.subscribe('*', Mock(side_effect=RuntimeError('render failed')))
        store.subscribe('*', after)

        with caplog.at_level(logging.ERROR, logger='RadioStore'):
            store.set('audio.volume', 30)

        after.assert_called_once_with(30, 50, 'audio.volume')
        assert store.get('audio.volume') == 30
        assert 'render failed' in caplog.text

    def test_reset_always_notifies(self, store, recorder):
        default_x = [1.0, 2.0, 2.0]
        store.set('system.x', [7, 7, 7], silent=True)
        store.subscribe('system.x', recorder)

        store.reset('system.x', default_x)

        assert recorder.calls == [([1.0, 2.0, 2.0], [7, 7, 7], 'system.x')]
        assert store.get('system.x') == default_x
        assert store.get('system.x') is not default_x

    def test_reset_skips_validation(self, store):
        store.reset('system.n', 99)
        assert store.get('system.n') == 99


# ======================================================================================================================
# PART 4: Batches
# ======================================================================================================================
class TestBatch:
    def test_one_transition_many_deliveries(self, store):
        a_cb, b_cb = Mock(), Mock()
        store.subscribe('a', a_cb)
        store.subscribe('b', b_cb)
        version = store.version

        store.batch({'a': 1, 'b': 2})

        assert store.version == version + 1
        a_cb.assert_called_once_with(1, None, 'a')
        b_cb.assert_called_once_with(2, None, 'b')

    def test_subscribers_see_the_whole_batch(self, store):
        seen = []
        store.subscribe('system.n', lambda new, old, path: seen.append(store.get('audio.volume')))
        store.batch({'system.n': 4, 'audio.volume': 10})
        assert seen == [10]

    def test_old_values_follow_the_evolving_candidate(self, store, recorder):
        store.subscribe('audio.volume', recorder)
        store.batch([('audio.volume', 60), ('audio.volume', 70)])
        assert recorder.calls == [(60, 50, 'audio.volume'), (70, 60, 'audio.volume')]
        assert store.get('audio.volume') == 70

    def test_validation_failure_aborts_everything(self, store):
        callback = Mock()
        store.subscribe('*', callback)
        before = store.get_state()

        with pytest.raises(ValidationError, match='n must be an integer between 2 and 20'):
            store.batch({'audio.volume': 10, 'system.n': 25}, validate=True)

        assert store.get_state() is before
        assert store.get('audio.volume') == 50
        callback.assert_not_called()

    def test_validation_sees_earlier_updates(self, store):
        store.batch({'system.n': 2, 'system.A': [[2, 1], [1, 2]]}, validate=True)
        assert store.get('system.n') == 2
        assert store.get('system.A') == [[2, 1], [1, 2]]

    def test_path_error_aborts_everything(self, store):
        with pytest.raises(PathError):
            store.batch({'audio.volume': 10, 'audio.volume.bad': 1})
        assert store.get('audio.volume') == 50

    def test_empty_batch_is_a_no_op(self, store):
        store.batch({})
        assert store.version == 0

    def test_silent_batch(self, store):
        callback = Mock()
        store.subscribe('*', callback)
        store.batch({'a': 1, 'b': 2}, silent=True)
        callback.assert_not_called()
        assert store.get('a') == 1


# ======================================================================================================================
# PART 5: Validation
# ======================================================================================================================
class TestValidation:
    def test_rejects_without_mutating(self, store):
        callback = Mock()
        store.subscribe('system.n', callback)

        with pytest.raises(ValidationError, match='n must be an integer between 2 and 20'):
            store.set('system.n', 25, validate=True)

        assert store.get('system.n') == 3
        assert store.version == 0
        callback.assert_not_called()

    def test_volume_validation(self, store):
        with pytest.raises(ValidationError, match='Volume must be between 0 and 100'):
            store.set('audio.volume', 150, validate=True)

    def test_validation_is_opt_in(self, store):
        store.set('system.n', 25)
        assert store.get('system.n') == 25

    def test_matrix_validated_against_current_n(self, store):
        with pytest.raises(ValidationError, match='A must be a 3×3 matrix'):
            store.set('system.A', [[1, 0], [0, 1]], validate=True)
        store.set('system.A', [[1, 0, 0], [0, 1, 0], [0, 0, 1]], validate=True)


# ======================================================================================================================
# PART 6: Reentrancy
# ======================================================================================================================
class TestReentrancy:
    def test_nested_update_delivers_before_outer_loop_continues(self, store):
        log = []

        def mute_on_zero(new, old, path):
            if new == 0:
                store.set('audio.isMuted', True)

        store.subscribe('audio.volume', mute_on_zero)
        store.subscribe('*', lambda new, old, path: log.append(path))

        store.set('audio.volume', 0)

        assert log == ['audio.isMuted', 'audio.volume']
        assert store.get('audio.isMuted') is True

    def test_unbounded_recursion_is_cut_off(self, caplog):
        store = Store({'counter': 0}, max_depth=5)
        store.subscribe('counter', lambda new, old, path: store.set('counter', new + 1))

        with caplog.at_level(logging.ERROR, logger='RadioStore'):
            store.set('counter', 0)

        assert store.get('counter') == 4
        assert 'exceeds the maximum depth of 5' in caplog.text

    def test_depth_resets_after_errors(self, store):
        with pytest.raises(ValidationError):
            store.set('system.n', 0, validate=True)
        assert store._depth == 0


# ======================================================================================================================
# PART 7: Item cursor
# ======================================================================================================================
class TestItem:
    def test_value_access(self, store):
        x0 = store.at('system.x')[0]
        assert x0.path == 'system.x[0]'
        assert x0.v == 1.0
        x0.v = 4.5
        assert store.get('system.x[0]') == 4.5

    def test_navigation(self, store):
        header = store.at('display')['visibility']['header']
        assert header.path == 'display.visibility.header'
        assert header.v is True
        assert header.parent.path == 'display.visibility'
        assert store.at('display').parent is None
        assert store.at('system.x[2]').parent.path == 'system.x'

    def test_get_and_val(self, store):
        audio = store.at('audio')
        assert audio.get('volume') == 50
        assert audio.get('missing', 'fallback') == 'fallback'
        assert store.at('cache.lastBandRange').val('none yet') == 'none yet'

    def test_set_dict_is_one_batch(self, store, recorder):
        store.subscribe('*', recorder)
        version = store.version
        store.at('audio').set({'volume': 10, 'isMuted': True})
        assert store.version == version + 1
        assert [c[2] for c in recorder.calls] == ['audio.volume', 'audio.isMuted']

    def test_set_single_key_with_options(self, store):
        with pytest.raises(ValidationError):
            store.at('audio').set('volume', 500, validate=True)
        store.at('system').set('x', [0, 0, 0]).set('n', 3)
        assert store.get('system.x') == [0, 0, 0]

    def test_iteration(self, store):
        assert list(store.at('audio')) == ['volume', 'isMuted']
        assert list(store.at('system.x')) == [0, 1, 2]
        assert list(store.at('audio.volume')) == []

    def test_item_subscribe(self, store):
        callback = Mock()
        store.at('display.visibility').subscribe(callback)
        store.set('display.visibility.header', False)
        store.set('display.theme', 'modern')
        callback.assert_called_once_with(False, True, 'display.visibility.header')

    def test_repr(self, store):
        assert repr(store.at('audio.volume')) == "<Item 'audio.volume': 50>"
        assert repr(store.at('nothing.here')) == "<Item 'nothing.here'>"


# ======================================================================================================================
# PART 8: Lifecycle and logging
# ======================================================================================================================
class TestLifecycle:
    def test_dispose_clears_subscriptions(self, store):
        callback = Mock()
        store.subscribe('*', callback)
        store.dispose()
        store.set('audio.volume', 1)
        callback.assert_not_called()
        assert store.subscriber_count == 0

    def test_context_manager(self):
        with Store({'a': 1}) as store:
            store.subscribe('*', Mock())
            assert store.subscriber_count == 1
        assert store.subscriber_count == 0

    def test_stores_are_independent(self):
        one, two = Store({'a': 1}), Store({'a': 1})
        one.set('a', 2)
        assert two.get('a') == 1


class TestLogging:
    def test_stealth_logs_nothing(self, caplog):
        store = Store(log_mode=rsLog.STEALTH)
        store.subscribe('*', Mock(side_effect=RuntimeError('hidden')))
        with caplog.at_level(logging.DEBUG, logger='RadioStore'):
            store.set('a', 1)
        assert caplog.records == []

    def test_full_logs_commits(self, caplog):
        with caplog.at_level(logging.DEBUG, logger='RadioStore'):
            store = Store(log_mode='full')
            store.set('a', 1)
        assert 'store created' in caplog.text
        assert 'commit v1: a' in caplog.text

    def test_quiet_logs_lifecycle_only(self, caplog):
        with caplog.at_level(logging.DEBUG, logger='RadioStore'):
            store = Store(log_mode='quiet')
            store.set('a', 1)
            store.dispose()
        assert 'store created' in caplog.text
        assert 'store disposed' in caplog.text
        assert 'commit' not in caplog.text

    def test_log_mode_conversion(self):
        assert Store(log_mode=3).log_mode is rsLog.FULL
        assert rsLog.from_any('off') is rsLog.OFF
        with pytest.raises(ValueError):
            rsLog.from_any('loud')
        with pytest.raises(TypeError):
            rsLog.from_any(1.5)
        with pytest.raises(TypeError):
            rsLog.from_any(True)
        with pytest.raises(ValueError, match='out of range'):
            rsLog.from_any(7)
        assert rsLog.from_any('Quiet') is rsLog.QUIET
        assert rsLog.from_any(rsLog.FULL) is rsLog.FULL
