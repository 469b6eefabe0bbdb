"""Property-based tests for trace context management."""

import threading
import uuid

from hypothesis import given, strategies as st

from src.utils.trace_context import get_current_trace, traced


class TestTraceContextManagement:
    """Tests for trace context management."""

    @given(num_traces=st.integers(min_value=1, max_value=10))
    def test_sequential_blocks_get_unique_uuids(self, num_traces):
        """
        **Feature: crypto-tracker, Property 10: Every fetch gets its own trace ID**

        For any number of traced operations, each SHALL receive a unique
        UUID4 trace ID that is current only inside its block.
        """
        traces = []
        for _ in range(num_traces):
            with traced() as trace_id:
                assert get_current_trace() == trace_id
                traces.append(trace_id)

        assert len(traces) == len(set(traces))
        for trace_id in traces:
            assert uuid.UUID(trace_id).version == 4
        assert get_current_trace() is None

    @given(depth=st.integers(min_value=1, max_value=6))
    def test_nested_blocks_restore_enclosing_trace(self, depth):
        seen = []

        def enter(level):
            with traced() as trace_id:
                seen.append(trace_id)
                if level < depth:
                    enter(level + 1)
                assert get_current_trace() == trace_id

        enter(1)

        assert len(set(seen)) == depth
        assert get_current_trace() is None

    def test_no_trace_outside_a_block(self):
        assert get_current_trace() is None

    def test_traced_block_restores_on_error(self):
        with traced() as outer:
            try:
                with traced():
                    raise RuntimeError("fetch failed")
            except RuntimeError:
                pass
            assert get_current_trace() == outer
        assert get_current_trace() is None

    def test_threads_do_not_share_traces(self):
        seen = {}

        def worker():
            with traced() as trace_id:
                seen["worker"] = trace_id

        with traced() as main_trace:
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()
            assert get_current_trace() == main_trace

        assert seen["worker"] != main_trace
