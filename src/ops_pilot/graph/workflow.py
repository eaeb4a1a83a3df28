"""LangGraph workflow assembly for the task pipeline."""

from langgraph.graph import END, StateGraph

from ops_pilot.graph.nodes import classify, decide, execute, finalize, recall
from ops_pilot.graph.state import PipelineState
from ops_pilot.models import OutputType


def build_graph():
    def _route_execution(state: PipelineState) -> str:
        decision = state.get("decision")
        if decision is None or decision.output_type == OutputType.NONE:
            return "skip"
        return "generate"

    graph = StateGraph(PipelineState)

    graph.add_node("classify", classify.run)
    graph.add_node("recall", recall.run)
    graph.add_node("decide", decide.run)
    graph.add_node("execute", execute.run)
    graph.add_node("skip_execution", execute.skip)
    graph.add_node("finalize", finalize.run)

    graph.set_entry_point("classify")
    graph.add_edge("classify", "recall")
    graph.add_edge("recall", "decide")
    graph.add_conditional_edges(
        "decide", _route_execution, {"generate": "execute", "skip": "skip_execution"}
    )
    graph.add_edge("execute", "finalize")
    graph.add_edge("skip_execution", "finalize")
    graph.add_edge("finalize", END)

    return graph.compile()
