import sys
from pathlib import Path
import unittest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from flowwalk.graph.model import (
    Choice,
    Connection,
    FlowGraph,
    InformationalStep,
    MultiChoiceStep,
    OutputPath,
    SingleChoiceStep,
    TerminalStep,
)
from flowwalk.traversal.engine import Action, TraversalEngine, replay
from flowwalk.traversal.errors import (
    DanglingTarget,
    MissingStep,
    NoPathDefined,
    SelectionRequired,
    TerminalDeadEnd,
    UnknownChoice,
)
from flowwalk.traversal.state import TraversalState


def single_choice_graph() -> FlowGraph:
    return FlowGraph(
        steps=[
            SingleChoiceStep(
                id="Q",
                content="Pick one",
                choices=[Choice("A", "Apple"), Choice("B", "Banana")],
            ),
            TerminalStep(id="X", content="Apples"),
            TerminalStep(id="Y", content="Bananas"),
        ],
        connections=[
            Connection("Q", "X", "A"),
            Connection("Q", "Y", "B"),
        ],
        start_step_id="Q",
    )


def multi_choice_graph() -> FlowGraph:
    return FlowGraph(
        steps=[
            MultiChoiceStep(
                id="M",
                content="Pick any",
                choices=[Choice("A"), Choice("B"), Choice("C")],
                paths=[
                    OutputPath("P1", "Only A", ("A",)),
                    OutputPath("P2", "A and B", ("A", "B")),
                    OutputPath("P3", "Else", ()),
                ],
            ),
            TerminalStep(id="X"),
            TerminalStep(id="Y"),
            TerminalStep(id="Z"),
        ],
        connections=[
            Connection("M", "X", "P1"),
            Connection("M", "Y", "P2"),
            Connection("M", "Z", "P3"),
        ],
        start_step_id="M",
    )


def linear_graph(allow_restart: bool) -> FlowGraph:
    return FlowGraph(
        steps=[
            InformationalStep(id="start", content="Welcome"),
            InformationalStep(id="middle", content="Keep going"),
            TerminalStep(id="end", content="Done", allow_restart=allow_restart),
        ],
        connections=[
            Connection("start", "middle"),
            Connection("middle", "end"),
        ],
    )


class TestStart(unittest.TestCase):
    def test_start_uses_designated_step(self):
        engine = TraversalEngine(linear_graph(allow_restart=False))
        state = engine.start()

        self.assertEqual(state.current_step_id, "start")
        self.assertEqual(state.selections, frozenset())
        self.assertEqual(state.history, ())

    def test_start_at_missing_step_fails(self):
        engine = TraversalEngine(linear_graph(allow_restart=False))
        with self.assertRaises(MissingStep) as ctx:
            engine.start("nowhere")
        self.assertFalse(ctx.exception.recoverable)

    def test_empty_start_id_is_not_the_default(self):
        engine = TraversalEngine(linear_graph(allow_restart=False))
        with self.assertRaises(MissingStep):
            engine.start("")


class TestSelections(unittest.TestCase):
    def test_single_choice_selection_is_exclusive(self):
        engine = TraversalEngine(single_choice_graph())
        state = engine.start()
        state = engine.toggle_selection(state, "A")
        state = engine.toggle_selection(state, "B")
        self.assertEqual(state.selections, frozenset({"B"}))

    def test_multi_choice_selection_toggles(self):
        engine = TraversalEngine(multi_choice_graph())
        state = engine.start()
        state = engine.toggle_selection(state, "A")
        state = engine.toggle_selection(state, "B")
        state = engine.toggle_selection(state, "A")
        self.assertEqual(state.selections, frozenset({"B"}))

    def test_explicit_exclusive_flag_wins(self):
        engine = TraversalEngine(multi_choice_graph())
        state = engine.start()
        state = engine.toggle_selection(state, "A")
        state = engine.toggle_selection(state, "C", exclusive=True)
        self.assertEqual(state.selections, frozenset({"C"}))

    def test_unknown_choice_is_rejected(self):
        engine = TraversalEngine(single_choice_graph())
        state = engine.start()
        with self.assertRaises(UnknownChoice):
            engine.toggle_selection(state, "Z")

    def test_selection_does_not_touch_the_graph(self):
        graph = single_choice_graph()
        snapshot = FlowGraph(graph.steps, graph.connections, graph.start_step_id)
        engine = TraversalEngine(graph)
        engine.toggle_selection(engine.start(), "A")
        self.assertEqual(graph, snapshot)


class TestAdvance(unittest.TestCase):
    def test_single_choice_follows_selected_outlet(self):
        engine = TraversalEngine(single_choice_graph())
        state = engine.toggle_selection(engine.start(), "B")
        state = engine.advance(state)

        self.assertEqual(state.current_step_id, "Y")
        self.assertEqual(state.history, ("Q",))
        self.assertEqual(state.selections, frozenset())

    def test_multi_choice_prefers_more_specific_path(self):
        engine = TraversalEngine(multi_choice_graph())
        state = engine.start()
        state = engine.toggle_selection(state, "A")
        state = engine.toggle_selection(state, "B")
        self.assertEqual(engine.advance(state).current_step_id, "Y")

    def test_multi_choice_subset_match(self):
        engine = TraversalEngine(multi_choice_graph())
        state = engine.start()
        state = engine.toggle_selection(state, "A")
        state = engine.toggle_selection(state, "C")
        self.assertEqual(engine.advance(state).current_step_id, "X")

    def test_multi_choice_falls_back_to_else_path(self):
        engine = TraversalEngine(multi_choice_graph())
        state = engine.toggle_selection(engine.start(), "C")
        self.assertEqual(engine.advance(state).current_step_id, "Z")

    def test_choice_steps_require_a_selection(self):
        for graph in (single_choice_graph(), multi_choice_graph()):
            engine = TraversalEngine(graph)
            state = engine.start()
            self.assertFalse(engine.can_advance(state))
            with self.assertRaises(SelectionRequired) as ctx:
                engine.advance(state)
            self.assertIsInstance(ctx.exception, NoPathDefined)

    def test_multi_choice_without_match_fails(self):
        graph = FlowGraph(
            steps=[
                MultiChoiceStep(
                    id="M",
                    choices=[Choice("A"), Choice("B")],
                    paths=[OutputPath("P1", "A only", ("A",))],
                ),
                TerminalStep(id="X"),
            ],
            connections=[Connection("M", "X", "P1")],
            start_step_id="M",
        )
        engine = TraversalEngine(graph)
        state = engine.toggle_selection(engine.start(), "B")
        with self.assertRaises(NoPathDefined):
            engine.advance(state)

    def test_matched_path_without_connection_fails(self):
        graph = FlowGraph(
            steps=[
                MultiChoiceStep(
                    id="M",
                    choices=[Choice("A")],
                    paths=[OutputPath("P1", "A", ("A",))],
                ),
            ],
            start_step_id="M",
        )
        engine = TraversalEngine(graph)
        state = engine.toggle_selection(engine.start(), "A")
        with self.assertRaises(NoPathDefined):
            engine.advance(state)

    def test_single_choice_without_outlet_fails(self):
        graph = FlowGraph(
            steps=[SingleChoiceStep(id="Q", choices=[Choice("A")])],
            start_step_id="Q",
        )
        engine = TraversalEngine(graph)
        state = engine.toggle_selection(engine.start(), "A")
        with self.assertRaises(NoPathDefined):
            engine.advance(state)

    def test_informational_without_connection_leaves_state_unchanged(self):
        graph = FlowGraph(steps=[InformationalStep(id="start", content="Alone")])
        engine = TraversalEngine(graph)
        state = engine.start()
        self.assertTrue(engine.can_advance(state))

        with self.assertRaises(NoPathDefined):
            engine.advance(state)
        self.assertEqual(state, TraversalState.initial("start"))

    def test_informational_follows_first_connection(self):
        graph = FlowGraph(
            steps=[
                InformationalStep(id="start"),
                TerminalStep(id="first"),
                TerminalStep(id="second"),
            ],
            connections=[Connection("start", "first"), Connection("start", "second")],
        )
        engine = TraversalEngine(graph)
        self.assertEqual(engine.advance(engine.start()).current_step_id, "first")

    def test_dangling_target_is_not_committed(self):
        graph = FlowGraph(
            steps=[InformationalStep(id="start")],
            connections=[Connection("start", "ghost")],
        )
        engine = TraversalEngine(graph)
        state = engine.start()
        with self.assertRaises(DanglingTarget) as ctx:
            engine.advance(state)
        self.assertEqual(ctx.exception.target_id, "ghost")
        self.assertEqual(state.current_step_id, "start")
        self.assertEqual(state.history, ())

    def test_terminal_with_restart_resets_to_start(self):
        engine = TraversalEngine(linear_graph(allow_restart=True))
        state = engine.advance(engine.advance(engine.start()))
        self.assertEqual(state.current_step_id, "end")
        self.assertTrue(engine.can_advance(state))

        restarted = engine.advance(state)
        self.assertEqual(restarted.current_step_id, "start")
        self.assertEqual(restarted.history, ())
        self.assertEqual(restarted.selections, frozenset())

    def test_terminal_without_restart_is_a_dead_end(self):
        engine = TraversalEngine(linear_graph(allow_restart=False))
        state = engine.advance(engine.advance(engine.start()))
        self.assertFalse(engine.can_advance(state))
        with self.assertRaises(TerminalDeadEnd):
            engine.advance(state)
        self.assertEqual(engine.back(state).current_step_id, "middle")

    def test_restart_goes_to_the_step_the_run_started_at(self):
        engine = TraversalEngine(linear_graph(allow_restart=True))
        state = engine.advance(engine.start("middle"))
        self.assertEqual(engine.advance(state).current_step_id, "middle")


class TestBack(unittest.TestCase):
    def test_back_restores_previous_step(self):
        engine = TraversalEngine(single_choice_graph())
        before = engine.toggle_selection(engine.start(), "A")
        after = engine.advance(before)
        restored = engine.back(after)

        self.assertEqual(restored.current_step_id, before.current_step_id)
        self.assertEqual(restored.selections, frozenset())
        self.assertEqual(restored.history, ())

    def test_back_with_empty_history_is_a_no_op(self):
        engine = TraversalEngine(single_choice_graph())
        state = engine.toggle_selection(engine.start(), "A")
        self.assertFalse(engine.can_go_back(state))
        self.assertIs(engine.back(state), state)

    def test_history_is_a_stack(self):
        engine = TraversalEngine(linear_graph(allow_restart=False))
        state = engine.advance(engine.advance(engine.start()))
        self.assertEqual(state.history, ("start", "middle"))
        state = engine.back(state)
        self.assertEqual(state.current_step_id, "middle")
        state = engine.back(state)
        self.assertEqual(state.current_step_id, "start")


class TestNeighbors(unittest.TestCase):
    def test_neighbors_are_deduplicated_by_step(self):
        graph = FlowGraph(
            steps=[
                SingleChoiceStep(id="Q", choices=[Choice("A"), Choice("B")]),
                TerminalStep(id="X"),
            ],
            connections=[Connection("Q", "X", "A"), Connection("Q", "X", "B")],
            start_step_id="Q",
        )
        engine = TraversalEngine(graph)
        self.assertEqual([step.id for step in engine.outgoing_neighbors("Q")], ["X"])
        self.assertEqual([step.id for step in engine.incoming_neighbors("X")], ["Q"])
        self.assertEqual(engine.incoming_neighbors("Q"), [])

    def test_neighbors_skip_missing_steps(self):
        graph = FlowGraph(
            steps=[InformationalStep(id="start")],
            connections=[Connection("start", "ghost")],
        )
        engine = TraversalEngine(graph)
        self.assertEqual(engine.outgoing_neighbors("start"), [])


class TestReplay(unittest.TestCase):
    def test_replay_collects_states(self):
        engine = TraversalEngine(multi_choice_graph())
        states = replay(
            engine,
            [Action("select", ("A", "B")), Action("advance"), Action("back")],
        )
        self.assertEqual(
            [state.current_step_id for state in states], ["M", "M", "Y", "M"]
        )

    def test_replay_attaches_states_to_errors(self):
        engine = TraversalEngine(multi_choice_graph())
        with self.assertRaises(SelectionRequired) as ctx:
            replay(engine, [Action("advance")])
        self.assertEqual(len(ctx.exception.states), 1)


if __name__ == "__main__":
    unittest.main()
