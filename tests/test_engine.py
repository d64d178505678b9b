"""
Tests for the engine core: nodes, retry, flows and shared state.
"""

import pytest

from flowengine.engine.collaborators import ToolDefinition
from flowengine.engine.errors import (
    DuplicateActionError,
    FlowContractError,
    ModelExecutionError,
    RetryExhaustedError,
    StepLimitExceeded,
)
from flowengine.engine.flow import BatchFlow, ExecutionStatus, Flow
from flowengine.engine.node import (
    BaseNode,
    NodeRun,
    RetryNode,
    DEFAULT_ACTION,
    STAY_ON_NODE_ACTION,
)
from flowengine.engine.state import SharedState, ToolContext


class StepNode(BaseNode):
    """Records its visit and returns ``params['action']``."""

    async def prep(self, state):
        return self.params.get("tag", self.node_id)

    async def execute(self, prep_result):
        return prep_result.upper()

    async def post(self, state, prep_result, exec_result):
        state.track("StepNode", self.node_id, prep_result)
        return self.params.get("action", DEFAULT_ACTION)


class PauseOnceNode(BaseNode):
    """Stays on itself the first time it runs."""

    async def post(self, state, prep_result, exec_result):
        seen = any(e["node_id"] == self.node_id for e in state.node_execution_tracker)
        state.track("PauseOnceNode", self.node_id, self.node_id)
        return DEFAULT_ACTION if seen else STAY_ON_NODE_ACTION


class LoopNode(BaseNode):
    """Loops back on itself until it has run ``params['times']`` times."""

    async def post(self, state, prep_result, exec_result):
        state.track("LoopNode", self.node_id, self.node_id)
        visits = sum(1 for e in state.node_execution_tracker if e["node_id"] == self.node_id)
        return "again" if visits < self.params.get("times", 3) else "done"


class PauseOnTagNode(BaseNode):
    """Stays on itself the first time it runs with ``params['pause_on']`` as its tag."""

    async def post(self, state, prep_result, exec_result):
        tag = self.params.get("tag")
        seen = any(e["node_name"] == tag for e in state.node_execution_tracker)
        state.track("PauseOnTagNode", self.node_id, tag)
        if tag == self.params.get("pause_on") and not seen:
            return STAY_ON_NODE_ACTION
        return DEFAULT_ACTION


class AbortingNode(BaseNode):
    async def execute(self, prep_result):
        raise ModelExecutionError("quota", code="429")


class FlakyNode(RetryNode):
    def __init__(self, failures: int, error: Exception = None, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures
        self.error = error or RuntimeError("flaky")
        self.attempts = 0

    async def execute(self, prep_result):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise self.error
        return "recovered"


def visited(state: SharedState):
    return [e["node_id"] for e in state.node_execution_tracker]


# ============================================================
# Node Tests
# ============================================================

class TestBaseNode:
    """Tests for node wiring, cloning and the lifecycle."""

    def test_clones_are_independent(self):
        """Test that clones do not share params."""
        template = StepNode("a", params={"properties": {"items": [1]}})
        first = template.clone()
        second = template.clone()

        first.params["properties"]["items"].append(2)
        first.params["extra"] = True

        assert template.params == {"properties": {"items": [1]}}
        assert second.params == {"properties": {"items": [1]}}

    def test_clone_shares_successor_templates(self):
        """Test that clones share successors but not the successor map."""
        template = StepNode("a")
        target = StepNode("b")
        template.add_successor(target, "go")

        twin = template.clone()
        twin.successors["extra"] = StepNode("c")

        assert twin.successors["go"] is target
        assert "extra" not in template.successors

    def test_duplicate_action_fails(self):
        """Test registering the same action twice."""
        node = StepNode("a")
        node.add_successor(StepNode("b"), "go")

        with pytest.raises(DuplicateActionError) as exc_info:
            node.add_successor(StepNode("c"), "go")
        assert exc_info.value.action == "go"

    def test_get_successor_returns_clone(self):
        """Test that successor lookup hands out clones."""
        node = StepNode("a")
        target = StepNode("b", params={"tag": "b"})
        node.add_successor(target, "go")

        successor = node.get_successor("go")

        assert successor is not target
        assert successor.node_id == "b"
        assert successor.params == target.params
        assert node.get_successor("missing") is None

    @pytest.mark.asyncio
    async def test_run_returns_action_and_results(self):
        """Test one prep, execute, post cycle."""
        node = StepNode("a", params={"tag": "hello", "action": "next"})
        state = SharedState()

        result = await node.run(state)

        assert isinstance(result, NodeRun)
        assert result.action == "next"
        assert result.prep_result == "hello"
        assert result.exec_result == "HELLO"
        assert visited(state) == ["a"]

    def test_set_params_copies(self):
        """Test that set_params keeps a private copy."""
        params = {"properties": {"x": [1]}}
        node = StepNode("a")
        node.set_params(params)
        node.params["properties"]["x"].append(2)
        assert params == {"properties": {"x": [1]}}


class TestRetryNode:
    """Tests for bounded retry."""

    @pytest.mark.asyncio
    async def test_recovers_within_attempts(self):
        """Test recovering before attempts run out."""
        node = FlakyNode(failures=2, node_id="flaky", max_retries=3, interval_ms=1)
        result = await node.run(SharedState())

        assert result.exec_result == "recovered"
        assert node.attempts == 3

    @pytest.mark.asyncio
    async def test_exhausting_attempts_aborts(self):
        """Test running out of attempts."""
        node = FlakyNode(failures=10, node_id="flaky", max_retries=3, interval_ms=1)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await node.run(SharedState())

        assert node.attempts == 3
        assert exc_info.value.attempts == 3
        assert "Max retries reached after 3 attempts" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_aborting_errors_are_not_retried(self):
        """Test that aborting errors skip the retry loop."""
        node = FlakyNode(
            failures=10,
            error=ModelExecutionError("quota", code="429"),
            node_id="flaky",
            max_retries=3,
        )

        with pytest.raises(ModelExecutionError):
            await node.run(SharedState())
        assert node.attempts == 1

    def test_requires_one_attempt(self):
        """Test rejecting a zero attempt budget."""
        with pytest.raises(ValueError):
            FlakyNode(failures=0, max_retries=0)


# ============================================================
# Flow Tests
# ============================================================

class TestFlowOrchestration:
    """Tests for the orchestration loop."""

    @pytest.mark.asyncio
    async def test_follows_returned_actions(self):
        """Test following the action a node returns."""
        a = StepNode("a", params={"action": "right"})
        left = StepNode("left")
        right = StepNode("right")
        a.add_successor(left, "left")
        a.add_successor(right, "right")

        state = SharedState()
        outcome = await Flow(a).orchestrate(state)

        assert outcome.status == ExecutionStatus.COMPLETED
        assert visited(state) == ["a", "right"]
        assert outcome.last_node_id == "right"

    @pytest.mark.asyncio
    async def test_missing_successor_completes(self):
        """Test completing when no successor matches."""
        a = StepNode("a", params={"action": "nowhere"})
        a.add_successor(StepNode("b"), "somewhere")

        state = SharedState(current_node_id=None)
        outcome = await Flow(a).orchestrate(state)

        assert outcome.status == ExecutionStatus.COMPLETED
        assert visited(state) == ["a"]
        assert state.current_node_id is None

    @pytest.mark.asyncio
    async def test_loops_until_exit_action(self):
        """Test a self loop ending on its exit action."""
        loop = LoopNode("loop", params={"times": 3})
        loop.add_successor(loop, "again")
        loop.add_successor(StepNode("exit"), "done")

        state = SharedState()
        await Flow(loop).orchestrate(state)

        assert visited(state) == ["loop", "loop", "loop", "exit"]
        assert loop.params == {"times": 3}

    @pytest.mark.asyncio
    async def test_stay_pauses_and_resumes(self):
        """Test pausing on a stay action and resuming there."""
        a, b, c = StepNode("a"), PauseOnceNode("b"), StepNode("c")
        a.add_successor(b)
        b.add_successor(c)
        flow = Flow(a)
        state = SharedState()

        first = await flow.orchestrate(state)

        assert first.status == ExecutionStatus.PAUSED
        assert state.current_node_id == "b"
        assert visited(state) == ["a", "b"]

        second = await flow.orchestrate(state)

        assert second.status == ExecutionStatus.COMPLETED
        assert visited(state) == ["a", "b", "b", "c"]
        assert state.current_node_id is None

    @pytest.mark.asyncio
    async def test_unknown_resume_position_starts_over(self):
        """Test falling back to the start node."""
        a, b = StepNode("a"), StepNode("b")
        a.add_successor(b)

        state = SharedState(current_node_id="ghost")
        outcome = await Flow(a).orchestrate(state)

        assert outcome.status == ExecutionStatus.COMPLETED
        assert visited(state) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_debug_steps_one_node_at_a_time(self):
        """Test debug stepping."""
        a, b, c = StepNode("a"), StepNode("b"), StepNode("c")
        a.add_successor(b)
        b.add_successor(c)
        flow = Flow(a)
        state = SharedState(debug=True)

        await flow.orchestrate(state)
        assert state.current_node_id == "b"
        assert visited(state) == ["a"]

        await flow.orchestrate(state)
        assert state.current_node_id == "c"

        outcome = await flow.orchestrate(state)
        assert outcome.status == ExecutionStatus.COMPLETED
        assert visited(state) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_runaway_loop_hits_step_limit(self):
        """Test the step limit."""
        loop = StepNode("loop", params={"action": "again"})
        loop.add_successor(loop, "again")

        with pytest.raises(StepLimitExceeded):
            await Flow(loop, max_steps=5).orchestrate(SharedState())

    @pytest.mark.asyncio
    async def test_node_params_override(self):
        """Test the per-node params table."""
        a = StepNode("a", params={"action": "left"})
        a.add_successor(StepNode("left"), "left")
        a.add_successor(StepNode("right"), "right")

        state = SharedState()
        await Flow(a, node_params={"a": {"action": "right"}}).orchestrate(state)

        assert visited(state) == ["a", "right"]
        assert a.params == {"action": "left"}

    @pytest.mark.asyncio
    async def test_status_follows_latest_pass(self):
        """The flow reports the status of its latest orchestration pass."""
        a, b = StepNode("a"), PauseOnceNode("b")
        a.add_successor(b)
        flow = Flow(a)
        state = SharedState()

        assert flow.status is None
        await flow.orchestrate(state)
        assert flow.status == ExecutionStatus.PAUSED
        await flow.orchestrate(state)
        assert flow.status == ExecutionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_abort_marks_flow_aborted(self):
        """An aborting error propagates and leaves the flow marked aborted."""
        start = StepNode("a")
        start.add_successor(AbortingNode("boom"))
        flow = Flow(start)

        with pytest.raises(ModelExecutionError):
            await flow.orchestrate(SharedState())
        assert flow.status == ExecutionStatus.ABORTED

    @pytest.mark.asyncio
    async def test_flow_cannot_be_executed_directly(self):
        """Test calling execute on a flow."""
        with pytest.raises(FlowContractError):
            await Flow(StepNode("a")).execute(None)


class TestNestedFlow:
    """Tests for flows used as nodes."""

    @pytest.mark.asyncio
    async def test_nested_flow_returns_default(self):
        """Test a flow used as a node."""
        inner = Flow(StepNode("inner-a"), node_id="inner")
        outer_start = StepNode("start")
        outer_start.add_successor(inner)
        inner.add_successor(StepNode("end"))

        state = SharedState()
        outcome = await Flow(outer_start).orchestrate(state)

        assert outcome.status == ExecutionStatus.COMPLETED
        assert visited(state) == ["start", "inner-a", "end"]

    @pytest.mark.asyncio
    async def test_nested_pause_resumes_inside(self):
        """Test a pause inside a nested flow."""
        inner_a, inner_b = StepNode("inner-a"), PauseOnceNode("inner-b")
        inner_a.add_successor(inner_b)
        inner = Flow(inner_a, node_id="inner")
        start = StepNode("start")
        start.add_successor(inner)
        inner.add_successor(StepNode("end"))
        outer = Flow(start)
        state = SharedState()

        first = await outer.orchestrate(state)

        assert first.status == ExecutionStatus.PAUSED
        assert state.current_node_id == "inner"
        assert state.nested_positions == {"inner": "inner-b"}

        second = await outer.orchestrate(state)

        assert second.status == ExecutionStatus.COMPLETED
        assert visited(state) == ["start", "inner-a", "inner-b", "inner-b", "end"]
        assert state.nested_positions == {}


class TestBatchFlow:
    """Tests for batch runs."""

    @pytest.mark.asyncio
    async def test_runs_once_per_params(self):
        """Test one pass per params dict."""
        a, b = StepNode("a"), StepNode("b")
        a.add_successor(b)
        batch = BatchFlow(a, params={"batch": [{"tag": "x"}, {"tag": "y"}, {"tag": "z"}]})
        state = SharedState()

        result = await batch.run(state)

        assert len(result.exec_result) == 3
        assert all(o.status == ExecutionStatus.COMPLETED for o in result.exec_result)
        assert [e["node_name"] for e in state.node_execution_tracker] == ["x", "x", "y", "y", "z", "z"]
        assert result.action == DEFAULT_ACTION

    @pytest.mark.asyncio
    async def test_paused_pass_resumes_with_its_params(self):
        """A paused pass is resumed with its own params and earlier passes are not rerun."""
        batch = BatchFlow(
            PauseOnTagNode("a", params={"pause_on": "y"}),
            node_id="batch",
            params={"batch": [{"tag": "x"}, {"tag": "y"}, {"tag": "z"}]},
        )
        state = SharedState()

        first = await batch.run(state)

        assert first.action == STAY_ON_NODE_ACTION
        assert state.batch_positions == {"batch": 1}
        assert state.nested_positions == {"batch": "a"}
        assert [e["node_name"] for e in state.node_execution_tracker] == ["x", "y"]

        second = await batch.run(state)

        assert second.action == DEFAULT_ACTION
        assert [e["node_name"] for e in state.node_execution_tracker[2:]] == ["y", "z"]
        assert len(second.exec_result) == 2
        assert state.batch_positions == {}
        assert state.nested_positions == {}

    @pytest.mark.asyncio
    async def test_nested_batch_pause_suspends_outer_flow(self):
        """A batch pass that pauses inside an outer flow pauses the outer flow on the batch node."""
        batch = BatchFlow(
            PauseOnTagNode("a", params={"pause_on": "y"}),
            node_id="batch",
            params={"batch": [{"tag": "x"}, {"tag": "y"}, {"tag": "z"}]},
        )
        start = StepNode("start")
        start.add_successor(batch)
        batch.add_successor(StepNode("end"))
        outer = Flow(start)
        state = SharedState()

        first = await outer.orchestrate(state)

        assert first.status == ExecutionStatus.PAUSED
        assert state.current_node_id == "batch"
        assert [e["node_name"] for e in state.node_execution_tracker] == ["start", "x", "y"]

        second = await outer.orchestrate(state)

        assert second.status == ExecutionStatus.COMPLETED
        assert [e["node_name"] for e in state.node_execution_tracker] == [
            "start", "x", "y", "y", "z", "end",
        ]
        assert state.current_node_id is None
        assert state.batch_positions == {}



# ============================================================
# State Tests
# ============================================================

class TestSharedState:
    """Tests for SharedState."""

    def test_track_appends_entries(self):
        """Test tracker entries."""
        state = SharedState()
        entry = state.track("ProcessNode", "p1", "Process", model="m")

        assert state.node_execution_tracker == [entry]
        assert entry["model"] == "m"
        assert "timestamp" in entry

    def test_snapshot_restores_pause_position(self):
        """Test state serialization round trip."""
        state = SharedState(
            messages=[{"role": "user", "content": "hi"}],
            current_node_id="p1",
            tool_context=ToolContext(available_tools=[ToolDefinition(server_name="s", name="t")]),
        )
        restored = SharedState.from_dict(state.to_dict())

        assert restored.current_node_id == "p1"
        assert restored.is_paused
        assert restored.tool_context.available_tools[0].name == "t"

    def test_tool_context_merge_skips_duplicates(self):
        """Test merging tools into the tool context."""
        context = ToolContext()
        tool = ToolDefinition(server_name="s", name="t")
        context.merge([tool])
        context.merge([tool, ToolDefinition(server_name="s", name="u")])

        assert [t.name for t in context.available_tools] == ["t", "u"]
