"""Chat session on top of the persisted conversation history."""

import logging
from enum import Enum
from typing import Callable, Iterable, List, Optional

from image_insight.analysis.base import ImageAnalyzer
from image_insight.analysis.config import Language, get_apology_text
from image_insight.analysis.errors import ChatTurnFailure
from image_insight.analysis.models import ChatMessage, ChatTurn, Role
from image_insight.analysis.store import ChatStore, HistoryListener

logger = logging.getLogger(__name__)

StateListener = Callable[["ChatState"], None]


class ChatState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    FAILED = "failed"


def build_history(messages: Iterable[ChatMessage], exclude_id: Optional[str] = None) -> List[ChatTurn]:
    """Convert persisted turns into model-facing history.

    Only user and model turns are kept, in the order given.

    Args:
        messages: Persisted turns, oldest first
        exclude_id: Id of a turn to leave out (the message being sent)

    Returns:
        List of ChatTurn
    """
    roles = {role.value for role in Role}
    return [
        ChatTurn(role=Role(message.role), text=message.text)
        for message in messages
        if message.role in roles and (exclude_id is None or message.id != exclude_id)
    ]


class ChatSessionManager:
    """Drives one user's conversation with the model.

    The store is the source of truth: the manager mirrors the store's live
    feed and republishes it to its own listeners. At most one send is in
    flight; every persisted user turn is answered by exactly one model turn,
    the apology text when the reply fails.
    """

    def __init__(
        self,
        analyzer: ImageAnalyzer,
        store: ChatStore,
        user_id: str,
        language: Language = Language.FR,
        apology_text: Optional[str] = None,
    ):
        self.analyzer = analyzer
        self.store = store
        self.user_id = user_id
        self.apology_text = apology_text or get_apology_text(language)
        self.state = ChatState.IDLE
        self._messages: List[ChatMessage] = []
        self._listeners: List[HistoryListener] = []
        self._state_listeners: List[StateListener] = []
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._sending = False
        self.last_error: Optional[ChatTurnFailure] = None

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    @property
    def is_open(self) -> bool:
        return self._unsubscribe is not None

    @property
    def is_sending(self) -> bool:
        return self._sending

    def open(self) -> "ChatSessionManager":
        """Subscribe to the store feed. Calling it again has no effect."""
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.user_id, self._on_history)
            logger.debug(f"Chat session opened for {self.user_id}")
        return self

    def close(self) -> None:
        """Release the store subscription."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.debug(f"Chat session closed for {self.user_id}")

    def __enter__(self) -> "ChatSessionManager":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def subscribe(self, listener: HistoryListener) -> Callable[[], None]:
        """Register a view listener; it receives the current list right away."""
        self._listeners.append(listener)
        listener(self.messages)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def subscribe_state(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called on every state transition.

        A failed reply is seen as SENDING, FAILED, then IDLE.
        """
        self._state_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._state_listeners:
                self._state_listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: ChatState) -> None:
        self.state = state
        for listener in list(self._state_listeners):
            listener(state)

    def _on_history(self, messages: List[ChatMessage]) -> None:
        self._messages = list(messages)
        for listener in list(self._listeners):
            listener(self.messages)

    async def send(self, text: str) -> bool:
        """Send a user message and persist the model's reply.

        Args:
            text: The user's message

        Returns:
            False if the message was ignored (blank text or a send in flight),
            True once the user turn and its answer have been handled.

        Raises:
            PersistenceError: If the user turn itself cannot be saved
        """
        if not text or not text.strip() or self._sending:
            return False

        self._sending = True
        self.last_error = None
        self._set_state(ChatState.SENDING)
        try:
            user_turn = await self.store.append(self.user_id, text, Role.USER)
            try:
                reply = await self._generate_reply(user_turn)
            except Exception as e:
                self.last_error = ChatTurnFailure(str(e))
                logger.error(f"Error sending message: {e}", exc_info=True)
                self._set_state(ChatState.FAILED)
                await self.store.append(self.user_id, self.apology_text, Role.MODEL)
            else:
                if reply:
                    await self.store.append(self.user_id, reply, Role.MODEL)
                else:
                    logger.warning("Model returned an empty reply; no turn saved")
            return True
        finally:
            self._sending = False
            self._set_state(ChatState.IDLE)

    async def _generate_reply(self, user_turn: ChatMessage) -> str:
        # Mirror may or may not hold the new turn yet depending on the store
        known = self._messages if self.is_open else self.store.list_messages(self.user_id)
        history = build_history(known, exclude_id=user_turn.id)
        fragments = []
        async for fragment in self.analyzer.stream_reply(history, user_turn.text):
            fragments.append(fragment)
        return "".join(fragments)
