"""
LangGraph Orchestration - Stage-driven joke bot conversation flow.

Each call to ``JokeBotController.advance_turn`` runs one pass through the
graph:

1. classify: resolve the user's intent for the current stage
2. retrieve: (only when a joke is wanted) select jokes, excluding recent ones
3. respond: apply the transition table and generate the reply

The transition table in ``transition`` is total, so every stage and intent
pair has a defined outcome and ambiguity turns into a re-prompt.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, TypedDict

from langchain_core.messages import AnyMessage
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages

from jokebot.agents.intent import Intent, IntentClassifier, IntentKind, KeywordIntentClassifier
from jokebot.agents.responder import (
    FALLBACK_APOLOGY,
    ReplyContext,
    ReplyGenerator,
    ReplyKind,
    TemplateReplyGenerator,
)
from jokebot.core.config import ConversationConfig, Settings
from jokebot.retrieval.corpus import Joke, JokeCorpus, load_corpus
from jokebot.retrieval.engine import RetrievalEngine
from jokebot.retrieval.index import build_index
from jokebot.retrieval.recency import RecencyMemory
from jokebot.orchestration.state import (
    ConversationState,
    Message,
    Stage,
    UserPreferences,
)


logger = logging.getLogger("jokebot.graph")

JOKE_STAGES = frozenset({Stage.ASKING_FOR_JOKE, Stage.ASKING_FOR_MORE})

FAILED_CLASSIFICATION_CONFIDENCE = 0.3


# ============================================================================
# Transition table
# ============================================================================

class Effect(str, Enum):
    """State change applied alongside a transition."""

    NONE = "none"
    SET_NAME = "set_name"
    DELIVER_JOKE = "deliver_joke"
    RESTART = "restart"
    RESET = "reset"


@dataclass(frozen=True)
class Transition:
    next_stage: Stage
    reply: ReplyKind
    effect: Effect = Effect.NONE


def normalize_intent(stage: Stage | None, intent: IntentKind | None) -> IntentKind | None:
    """
    Fold the full intent vocabulary onto what a stage reacts to.

    In the joke stages a farewell counts as declining, and greetings or
    names count as unclear.
    """
    if stage not in JOKE_STAGES or intent is None:
        return intent
    if intent is IntentKind.FAREWELL:
        return IntentKind.DONT_WANT_JOKE
    if intent in (IntentKind.GREETING, IntentKind.PROVIDE_NAME):
        return IntentKind.UNCLEAR
    return intent


def transition(
    stage: Stage | None,
    intent: IntentKind | None,
    *,
    name_extracted: bool = False,
    jokes_found: bool = True,
) -> Transition:
    """
    Return the next stage, reply and effect for a stage and intent.

    ``stage`` is None for an unrecognized stage value, which resets the
    conversation instead of failing.
    """
    if stage is None:
        return Transition(Stage.WAITING_FOR_NAME, ReplyKind.RESET, Effect.RESET)

    if stage is Stage.GREETING:
        return Transition(Stage.WAITING_FOR_NAME, ReplyKind.NAME_REQUEST)

    if stage is Stage.WAITING_FOR_NAME:
        if name_extracted:
            return Transition(Stage.ASKING_FOR_JOKE, ReplyKind.JOKE_OFFER, Effect.SET_NAME)
        return Transition(Stage.WAITING_FOR_NAME, ReplyKind.NAME_RETRY)

    if stage is Stage.CONVERSATION_ENDED:
        if intent is IntentKind.GREETING:
            return Transition(Stage.WAITING_FOR_NAME, ReplyKind.RESTART, Effect.RESTART)
        return Transition(Stage.CONVERSATION_ENDED, ReplyKind.RESTART_HINT)

    kind = normalize_intent(stage, intent)
    if kind is IntentKind.WANT_JOKE:
        if jokes_found:
            return Transition(Stage.ASKING_FOR_MORE, ReplyKind.JOKE, Effect.DELIVER_JOKE)
        return Transition(Stage.ASKING_FOR_MORE, ReplyKind.NO_JOKES)
    if kind is IntentKind.DONT_WANT_JOKE:
        if stage is Stage.ASKING_FOR_JOKE:
            return Transition(Stage.ASKING_FOR_JOKE, ReplyKind.DECLINED)
        return Transition(Stage.CONVERSATION_ENDED, ReplyKind.FAREWELL)
    return Transition(stage, ReplyKind.CLARIFY)


# ============================================================================
# TypedDict State for LangGraph
# ============================================================================

class GraphState(TypedDict, total=False):
    """State dict for LangGraph nodes."""
    messages: Annotated[list[AnyMessage], add_messages]
    stage: str
    user_name: str
    jokes_count: int
    last_query: str
    retrieved_context: list[Joke]
    preferred_category: str | None
    conversation_history: list[str]
    recent_jokes: list[str]
    utterance: str
    intent: Intent | None
    reply: str


# ============================================================================
# Controller
# ============================================================================

class JokeBotController:
    """
    Conversation controller for the joke bot.

    Intent classification, retrieval and reply generation are injected, so
    the keyword and LLM variants share this graph and transition table.
    """

    def __init__(
        self,
        classifier: IntentClassifier,
        engine: RetrievalEngine,
        responder: ReplyGenerator,
        config: ConversationConfig | None = None,
    ) -> None:
        self._classifier = classifier
        self._engine = engine
        self._responder = responder
        self._config = config or ConversationConfig()
        self._graph = self._build_graph()

    @property
    def classifier(self) -> IntentClassifier:
        return self._classifier

    def _build_graph(self):
        """
        Build the LangGraph for one conversation turn.

        Flow:
        1. classify -> (joke wanted? -> retrieve, otherwise -> respond)
        2. retrieve -> respond
        3. respond -> end
        """
        workflow = StateGraph(GraphState)

        workflow.add_node("classify", self.classify_node)
        workflow.add_node("retrieve", self.retrieve_node)
        workflow.add_node("respond", self.respond_node)

        workflow.set_entry_point("classify")
        workflow.add_conditional_edges(
            "classify",
            self.route_after_classify,
            {
                "retrieve": "retrieve",
                "respond": "respond",
            },
        )
        workflow.add_edge("retrieve", "respond")
        workflow.add_edge("respond", END)

        return workflow.compile()

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def classify_node(self, state: GraphState) -> dict[str, Any]:
        """Classify the utterance and log it to the conversation history."""
        stage = Stage.parse(state.get("stage"))
        utterance = state.get("utterance", "")
        history = list(state.get("conversation_history", []))

        intent: Intent | None = None
        # Greeting and corrupted stages advance on any input.
        if stage is not None and stage is not Stage.GREETING:
            try:
                intent = self._classifier.classify(
                    utterance,
                    history=history,
                    stage=stage,
                    user_name=state.get("user_name", ""),
                )
            except Exception:
                logger.exception("Intent classification failed; treating as unclear")
                intent = Intent(kind=IntentKind.UNCLEAR, confidence=FAILED_CLASSIFICATION_CONFIDENCE)

        logger.debug(
            "Turn at stage=%s intent=%s jokes=%d",
            state.get("stage"),
            intent.kind.value if intent else None,
            state.get("jokes_count", 0),
        )
        return {
            "intent": intent,
            "conversation_history": history + [utterance],
        }

    def route_after_classify(self, state: GraphState) -> Literal["retrieve", "respond"]:
        """Retrieve only when a joke is wanted in a joke stage."""
        stage = Stage.parse(state.get("stage"))
        intent = state.get("intent")
        if stage in JOKE_STAGES and intent is not None:
            if normalize_intent(stage, intent.kind) is IntentKind.WANT_JOKE:
                return "retrieve"
        return "respond"

    def retrieve_node(self, state: GraphState) -> dict[str, Any]:
        """Select jokes for the utterance, excluding recently shown ones."""
        query = state.get("utterance", "")
        jokes = self._engine.retrieve(
            query,
            excluded=state.get("recent_jokes", []),
            preferred_category=state.get("preferred_category"),
        )
        return {"last_query": query, "retrieved_context": jokes}

    def respond_node(self, state: GraphState) -> dict[str, Any]:
        """Apply the transition table and generate the reply."""
        raw_stage = state.get("stage")
        stage = Stage.parse(raw_stage)
        if stage is None:
            logger.warning("Unrecognized stage %r; resetting conversation", raw_stage)

        intent = state.get("intent")
        jokes = list(state.get("retrieved_context", []))
        move = transition(
            stage,
            intent.kind if intent else None,
            name_extracted=bool(intent and intent.extracted_name),
            jokes_found=bool(jokes),
        )

        user_name = state.get("user_name", "")
        jokes_count = state.get("jokes_count", 0)
        recent = RecencyMemory(
            state.get("recent_jokes", []),
            capacity=self._config.recent_jokes_capacity,
        )
        preferred_category = state.get("preferred_category")

        if move.effect is Effect.SET_NAME and intent is not None:
            user_name = intent.extracted_name or ""
        elif move.effect in (Effect.RESTART, Effect.RESET):
            user_name = ""
            jokes_count = 0
            recent.clear()
            preferred_category = None

        context = ReplyContext(
            kind=move.reply,
            stage=move.next_stage,
            user_name=user_name,
            utterance=state.get("utterance", ""),
            jokes=jokes,
            jokes_count=jokes_count,
        )
        try:
            reply = self._responder.generate(context)
        except Exception:
            logger.exception("Reply generation failed at stage %s", raw_stage)
            return {
                "messages": [{"role": "assistant", "content": FALLBACK_APOLOGY}],
                "stage": (stage or Stage.GREETING).value,
                "reply": FALLBACK_APOLOGY,
            }

        if move.effect is Effect.DELIVER_JOKE:
            delivered = jokes[0]
            jokes_count += 1
            recent.record([delivered.content])
            preferred_category = delivered.category

        return {
            "messages": [{"role": "assistant", "content": reply}],
            "stage": move.next_stage.value,
            "user_name": user_name,
            "jokes_count": jokes_count,
            "recent_jokes": recent.items(),
            "preferred_category": preferred_category,
            "reply": reply,
        }

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def advance_turn(self, state: ConversationState, utterance: str) -> tuple[ConversationState, str]:
        """
        Process one user utterance.

        Args:
            state: Current conversation state. It is not modified.
            utterance: The user's message.

        Returns:
            The complete next state and the reply text.

        Raises:
            IndexNotInitializedError: If retrieval runs before the joke
                index is initialized.
        """
        utterance = (utterance or "").strip()[: self._config.max_message_length]
        result = self._graph.invoke(_to_graph_state(state, utterance))
        return _from_graph_state(result), result["reply"]


def _to_graph_state(state: ConversationState, utterance: str) -> GraphState:
    stage = state.stage.value if isinstance(state.stage, Stage) else str(state.stage)
    messages: list[dict[str, str]] = [
        {"role": m.role, "content": m.content, "id": m.id}
        for m in state.messages
    ]
    messages.append({"role": "user", "content": utterance})
    return {
        "messages": messages,
        "stage": stage,
        "user_name": state.user_name,
        "jokes_count": state.jokes_count,
        "last_query": state.last_query,
        "retrieved_context": [],
        "preferred_category": state.user_preferences.preferred_joke_category,
        "conversation_history": list(state.conversation_history),
        "recent_jokes": list(state.recent_jokes),
        "utterance": utterance,
        "intent": None,
        "reply": "",
    }


def _from_graph_state(result: dict[str, Any]) -> ConversationState:
    messages = [
        Message(
            role="user" if m.type == "human" else "assistant",
            content=m.content if isinstance(m.content, str) else str(m.content),
            id=m.id,
        )
        for m in result.get("messages", [])
    ]
    return ConversationState(
        messages=messages,
        stage=Stage.parse(result.get("stage")) or Stage.GREETING,
        user_name=result.get("user_name", ""),
        jokes_count=result.get("jokes_count", 0),
        last_query=result.get("last_query", ""),
        retrieved_context=list(result.get("retrieved_context", [])),
        user_preferences=UserPreferences(
            preferred_joke_category=result.get("preferred_category"),
        ),
        conversation_history=list(result.get("conversation_history", [])),
        recent_jokes=list(result.get("recent_jokes", [])),
    )


# ============================================================================
# Wiring
# ============================================================================

def build_controller(
    settings: Settings | None = None,
    corpus: JokeCorpus | None = None,
) -> JokeBotController:
    """
    Assemble a controller from settings.

    Loads the corpus, initializes the index, and picks the Groq-backed
    classifier and generator when an API key is configured, otherwise the
    keyword classifier and templates.
    """
    settings = settings or Settings()
    corpus = corpus if corpus is not None else load_corpus(settings.corpus_path)
    index = build_index(corpus)
    engine = RetrievalEngine(index, corpus, settings.retrieval)

    classifier: IntentClassifier
    responder: ReplyGenerator
    if settings.llm_enabled:
        # Imported here so the keyword variant has no Groq client to build.
        from jokebot.agents.llm_intent import GroqIntentClassifier
        from jokebot.agents.responder import GroqReplyGenerator

        api_key = settings.require_api_key()
        classifier = GroqIntentClassifier(
            api_key,
            model=settings.model.name,
            temperature=settings.model.classifier_temperature,
            history_window=settings.conversation.classifier_history_window,
        )
        responder = GroqReplyGenerator(
            api_key,
            model=settings.model.name,
            temperature=settings.model.reply_temperature,
            max_tokens=settings.model.max_output_tokens,
        )
    else:
        classifier = KeywordIntentClassifier()
        responder = TemplateReplyGenerator()

    logger.info("Joke bot ready: %s, %d jokes", classifier.describe(), len(corpus))
    return JokeBotController(classifier, engine, responder, settings.conversation)


class ConversationOrchestrator:
    """
    Session host for many independent conversations.

    Turns of one session are serialized with a per-session lock; different
    sessions run concurrently and share only the read-only corpus and index.
    """

    def __init__(self, controller: JokeBotController) -> None:
        self._controller = controller
        self._sessions: dict[str, ConversationState] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(session_id, threading.Lock())

    def process_message(self, session_id: str, message: str) -> tuple[ConversationState, str]:
        """
        Process a single message in a conversation.

        Returns:
            The session's new state and the reply text.
        """
        with self._lock_for(session_id):
            state = self._sessions.get(session_id) or ConversationState()
            next_state, reply = self._controller.advance_turn(state, message)
            self._sessions[session_id] = next_state
        return next_state, reply

    def get_session(self, session_id: str) -> ConversationState | None:
        """Get the current state of a session."""
        return self._sessions.get(session_id)

    def reset_session(self, session_id: str) -> ConversationState:
        """Start a session over from the greeting stage."""
        with self._lock_for(session_id):
            state = ConversationState()
            self._sessions[session_id] = state
        return state

    def clear_session(self, session_id: str) -> None:
        """Remove a session from memory."""
        with self._lock_for(session_id):
            self._sessions.pop(session_id, None)
        with self._guard:
            self._locks.pop(session_id, None)
