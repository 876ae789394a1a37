# backend/graph.py

import logging
from typing import List, Optional, Protocol, Sequence, TypedDict

from langgraph.graph import StateGraph, END

from models import ChatTurn

# Logger for graph / LLM layer
logger = logging.getLogger("fysiosim_graph")


class CompletionClient(Protocol):
    def complete(self, system_instruction: Optional[str], turns: Sequence[ChatTurn]) -> str:
        ...


class ConsultState(TypedDict, total=False):
    system_instruction: str
    turns: List[ChatTurn]
    reply: str


def build_consult_graph(client: CompletionClient):
    """One tutor turn: the full transcript in, the next assistant text out."""

    def tutor_node(state: ConsultState) -> ConsultState:
        turns = list(state.get("turns", []))
        # Errors from the client propagate; the caller decides what to persist.
        reply = client.complete(state["system_instruction"], turns)
        logger.debug("Tutor node produced reply: turns_in=%d length=%d", len(turns), len(reply))
        return {"reply": reply}

    workflow = StateGraph(ConsultState)
    workflow.add_node("tutor", tutor_node)
    workflow.set_entry_point("tutor")
    workflow.add_edge("tutor", END)
    logger.info("LangGraph consult workflow compiled")
    return workflow.compile()
