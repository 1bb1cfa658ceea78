"""Tool-calling workflow implementation using LangGraph.

The graph alternates between a ``model`` node, which asks the chat model for
its next turn, and a ``tools`` node, which dispatches the requested tool
calls. The loop is bounded:

- a turn without tool calls ends the session with its text;
- a tool call whose signature already ran in this session is not executed
  again, its cached payload is replayed instead;
- a turn consisting only of such replays ends the session;
- once ``max_tool_rounds`` dispatch rounds have run, a further request for
  tools ends the session with a generic fallback message.
"""

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, TypedDict

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages

from src.pipelines.retrieval.models import CatalogItem

from ..exceptions import InferenceError, ToolArgumentError
from ..llm.client import LLMClient
from ..logging import InferenceLoggerMixin
from ..models import StopReason
from ..prompts import DEFAULT_ANSWER, FALLBACK_MESSAGE, mock_response
from ..tools.executor import ToolContext, ToolExecutor
from ..tools.schemas import parse_tool_call, signature


class ConversationState(TypedDict):
    """State for one tool-calling session.

    Attributes:
        messages: Conversation messages (managed by LangGraph)
        user_message: The user turn that started the session
        user_id: Optional user id for analytics events
        session_id: Optional session id for analytics events
        rounds: Tool dispatch rounds completed so far
        executed: Tool-call signature to the payload it produced
        items: Catalog items surfaced by tools, first occurrence per id
        final_text: Answer returned to the user
        stop_reason: Why the session ended, empty while running
        mock_response: Whether final_text is a canned offline answer
    """
    messages: Annotated[Sequence[BaseMessage], add_messages]
    user_message: str
    user_id: Optional[str]
    session_id: Optional[str]
    rounds: int
    executed: Dict[str, Dict[str, Any]]
    items: List[CatalogItem]
    final_text: str
    stop_reason: str
    mock_response: bool


def merge_items(existing: Sequence[CatalogItem], new: Sequence[CatalogItem]) -> List[CatalogItem]:
    """Append ``new`` to ``existing`` keeping the first occurrence of each id."""
    merged = list(existing)
    seen = {item.id for item in merged}
    for item in new:
        if item.id not in seen:
            seen.add(item.id)
            merged.append(item)
    return merged


class ToolCallingWorkflow(InferenceLoggerMixin):
    """LangGraph loop of model turns and idempotent tool dispatch.

    Attributes:
        llm_client: Tool-bound chat model client
        executor: Tool executor backed by the retrieval pipeline
        max_tool_rounds: Ceiling on dispatch rounds per session
        app: Compiled workflow application
    """

    def __init__(self, llm_client: LLMClient, executor: ToolExecutor, max_tool_rounds: int = 5):
        self.llm_client = llm_client
        self.executor = executor
        self.max_tool_rounds = max_tool_rounds

        self.workflow = self._build_workflow()
        self.app = self.workflow.compile()

    def _build_workflow(self) -> StateGraph:
        workflow = StateGraph(ConversationState)

        workflow.add_node("model", self._model_node)
        workflow.add_node("tools", self._tools_node)

        workflow.set_entry_point("model")

        workflow.add_conditional_edges("model", self._after_model, {"tools": "tools", "end": END})
        workflow.add_conditional_edges("tools", self._after_tools, {"model": "model", "end": END})

        return workflow

    async def _model_node(self, state: ConversationState) -> Dict[str, Any]:
        """Ask the model for its next turn and decide whether the session ends."""
        first_turn = not any(isinstance(m, AIMessage) for m in state["messages"])

        try:
            response = await self.llm_client.ainvoke(list(state["messages"]))
        except InferenceError as e:
            self.logger.warning(
                f"Model turn failed: {e}",
                extra={'extra_fields': {'first_turn': first_turn, 'rounds': state["rounds"],
                                        'error_type': type(e).__name__}}
            )
            if first_turn:
                return {
                    "final_text": mock_response(state["user_message"]),
                    "stop_reason": StopReason.LLM_ERROR.value,
                    "mock_response": True,
                }
            return {"final_text": FALLBACK_MESSAGE, "stop_reason": StopReason.LLM_ERROR.value}

        if not response.tool_calls:
            text = response.content if isinstance(response.content, str) else ""
            return {
                "messages": [response],
                "final_text": text.strip() or DEFAULT_ANSWER,
                "stop_reason": StopReason.ANSWERED.value,
            }

        if state["rounds"] >= self.max_tool_rounds:
            self.logger.warning(
                f"Tool round ceiling of {self.max_tool_rounds} reached",
                extra={'extra_fields': {'rounds': state["rounds"],
                                        'requested_tools': [tc["name"] for tc in response.tool_calls]}}
            )
            return {"final_text": FALLBACK_MESSAGE, "stop_reason": StopReason.MAX_ROUNDS.value}

        return {"messages": [response]}

    async def _tools_node(self, state: ConversationState) -> Dict[str, Any]:
        """Dispatch the last turn's tool calls, replaying known signatures."""
        last_message = state["messages"][-1]
        executed = dict(state["executed"])
        items = list(state["items"])
        context = ToolContext(
            user_message=state["user_message"],
            user_id=state.get("user_id"),
            session_id=state.get("session_id"),
        )

        tool_messages: List[ToolMessage] = []
        new_calls = 0

        for tool_call in last_message.tool_calls:
            name = tool_call["name"]
            try:
                call = parse_tool_call(name, tool_call.get("args"))
            except ToolArgumentError as e:
                self.logger.info(
                    f"Rejected tool call {name}: {e.message}",
                    extra={'extra_fields': {'tool': name, 'errors': e.errors}}
                )
                new_calls += 1
                payload = e.to_payload()
            else:
                key = signature(call)
                if key in executed:
                    self.logger.info(f"Replaying duplicate tool call {key}")
                    payload = executed[key]
                else:
                    new_calls += 1
                    result = await self.executor.execute(call, context)
                    payload = result.payload
                    executed[key] = payload
                    items = merge_items(items, result.items)

            tool_messages.append(ToolMessage(
                content=json.dumps(payload, default=str),
                tool_call_id=tool_call["id"],
                name=name,
            ))

        update: Dict[str, Any] = {
            "messages": tool_messages,
            "rounds": state["rounds"] + 1,
            "executed": executed,
            "items": items,
        }

        if new_calls == 0:
            self.logger.info("Every tool call in this turn was a duplicate; ending session")
            update["final_text"] = FALLBACK_MESSAGE
            update["stop_reason"] = StopReason.DUPLICATE_CALLS.value

        return update

    def _after_model(self, state: ConversationState) -> Literal["tools", "end"]:
        return "end" if state["stop_reason"] else "tools"

    def _after_tools(self, state: ConversationState) -> Literal["model", "end"]:
        return "end" if state["stop_reason"] else "model"

    async def arun(
        self,
        messages: List[BaseMessage],
        user_message: str,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> ConversationState:
        """Run one session to completion and return its final state."""
        initial_state: ConversationState = {
            "messages": messages,
            "user_message": user_message,
            "user_id": user_id,
            "session_id": session_id,
            "rounds": 0,
            "executed": {},
            "items": [],
            "final_text": "",
            "stop_reason": "",
            "mock_response": False,
        }
        # two graph steps per round plus the closing model turn
        recursion_limit = 2 * self.max_tool_rounds + 5
        return await self.app.ainvoke(initial_state, config={"recursion_limit": recursion_limit})
