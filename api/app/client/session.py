"""One signed-in user's messaging session on the client."""

import logging
from typing import Any

from ..config import TYPING_IDLE_SECONDS
from ..errors import NotAllowedError, TransportError
from .api_client import MatchApiClient
from .connection_manager import ConnectionManager, SubscriberConfig
from .conversation_state import ConversationState
from .typing_indicator import TypingNotifier

logger = logging.getLogger(__name__)


class MessagingSession:
    """Keeps a :class:`ConversationState` current from pushes and HTTP fetches.

    When the realtime connection cannot be opened the session keeps working
    with HTTP only; callers can refresh periodically in that mode.
    """

    def __init__(
        self,
        user_id: str,
        api: MatchApiClient,
        manager: ConnectionManager,
        typing_idle_seconds: float = TYPING_IDLE_SECONDS,
    ):
        self.user_id = user_id
        self.api = api
        self.manager = manager
        self.state = ConversationState(user_id)
        self.realtime = False
        self._typing_idle_seconds = typing_idle_seconds
        self._subscriber_id: str | None = None
        self._notifiers: dict[str, TypingNotifier] = {}

    async def start(self) -> None:
        config = SubscriberConfig(
            user_id=self.user_id,
            on_message=self.state.apply_incoming_message,
            on_typing=self.state.apply_typing,
            on_read_receipt=self.state.apply_read_receipt,
            on_match=self.state.apply_match,
            on_like=self.state.apply_like,
        )
        try:
            self._subscriber_id = await self.manager.connect(config)
            self.realtime = True
        except TransportError as exc:
            logger.warning(f"[session] realtime unavailable for {self.user_id}, using polling: {exc}")
            self.realtime = False
        await self.refresh()

    async def refresh(self) -> list[dict[str, Any]]:
        self.state.load_conversations(await self.api.list_conversations())
        return self.state.conversations

    async def open_conversation(self, match_id: str, page: int = 1) -> list[dict[str, Any]]:
        data = await self.api.get_messages(match_id, page=page)
        messages = self.state.merge_history(match_id, data.get("messages", []))
        # The server marks fetched messages read as part of the fetch.
        self.state.mark_conversation_read(match_id)
        return messages

    async def send(self, match_id: str, content: str, message_type: str = "text") -> dict[str, Any]:
        view = self.state.conversation(match_id)
        if view is None or not self.state.can_message(match_id):
            raise NotAllowedError("You can only message users you have matched with")
        notifier = self._notifiers.get(match_id)
        if notifier is not None:
            notifier.stop()
        result = await self.api.send_message(view["otherUser"]["id"], content, message_type, match_id=match_id)
        message = result["message"]
        self.state.append_own(message)
        return message

    def keystroke(self, match_id: str) -> None:
        self._notifier(match_id).keystroke()

    def blur(self, match_id: str) -> None:
        notifier = self._notifiers.get(match_id)
        if notifier is not None:
            notifier.stop()

    async def acknowledge_read(self, match_id: str) -> dict[str, Any]:
        result = await self.api.send_read_receipt(match_id)
        self.state.mark_conversation_read(match_id)
        return result

    async def act(self, target_user_id: str, action: str) -> dict[str, Any]:
        result = await self.api.record_action(target_user_id, action)
        mutual = result.get("mutualMatch")
        if result.get("match") and mutual:
            self.state.apply_match({"match": mutual})
        return result

    async def close(self) -> None:
        for notifier in list(self._notifiers.values()):
            await notifier.aclose()
        self._notifiers.clear()
        if self._subscriber_id is not None:
            subscriber_id, self._subscriber_id = self._subscriber_id, None
            await self.manager.disconnect(subscriber_id)
        self.realtime = False

    def _notifier(self, match_id: str) -> TypingNotifier:
        notifier = self._notifiers.get(match_id)
        if notifier is None:
            view = self.state.conversation(match_id)
            if view is None or not self.state.can_message(match_id):
                raise NotAllowedError("No active match for this conversation")
            receiver_id = view["otherUser"]["id"]

            async def send(is_typing: bool) -> None:
                await self.api.send_typing(match_id, receiver_id, is_typing)

            notifier = TypingNotifier(send, self._typing_idle_seconds)
            self._notifiers[match_id] = notifier
        return notifier
