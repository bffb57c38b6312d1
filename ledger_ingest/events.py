"""Event kinds accepted by the pipeline and how each is tagged in the ledger."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from ledger_ingest import settings


class UnknownEventKindError(ValueError):
    """Raised for an event kind outside the supported set."""


# Chat platform message types, keyed by the numeric ``type`` of a message
MESSAGE_TYPES = {
    0: "DEFAULT",
    1: "RECIPIENT_ADD",
    2: "RECIPIENT_REMOVE",
    3: "CALL",
    4: "CHANNEL_NAME_CHANGE",
    5: "CHANNEL_ICON_CHANGE",
    6: "CHANNEL_PINNED_MESSAGE",
    7: "GUILD_MEMBER_JOIN",
    8: "USER_PREMIUM_GUILD_SUBSCRIPTION",
    9: "USER_PREMIUM_GUILD_SUBSCRIPTION_TIER_1",
    10: "USER_PREMIUM_GUILD_SUBSCRIPTION_TIER_2",
    11: "USER_PREMIUM_GUILD_SUBSCRIPTION_TIER_3",
    12: "CHANNEL_FOLLOW_ADD",
    14: "GUILD_DISCOVERY_DISQUALIFIED",
    15: "GUILD_DISCOVERY_REQUALIFIED",
    16: "GUILD_DISCOVERY_GRACE_PERIOD_INITIAL_WARNING",
    17: "GUILD_DISCOVERY_GRACE_PERIOD_FINAL_WARNING",
    18: "THREAD_CREATED",
    19: "REPLY",
    20: "CHAT_INPUT_COMMAND",
    21: "THREAD_STARTER_MESSAGE",
    22: "GUILD_INVITE_REMINDER",
    23: "CONTEXT_MENU_COMMAND",
    24: "AUTO_MODERATION_ACTION",
    25: "ROLE_SUBSCRIPTION_PURCHASE",
    26: "INTERACTION_PREMIUM_UPSELL",
    27: "STAGE_START",
    28: "STAGE_END",
    29: "STAGE_SPEAKER",
    30: "STAGE_TOPIC",
    31: "GUILD_APPLICATION_PREMIUM_SUBSCRIPTION",
}

# Non-message events get codes above the platform's own message types
EVENT_TYPE_CODES = {
    "reaction_add": 1000,
    "reaction_remove": 1001,
    "message_delete": 1002,
    "message_update": 1003,
    "channel_create": 1004,
    "channel_delete": 1005,
    "thread_create": 1006,
    "thread_delete": 1007,
    "member_join": 1008,
    "member_leave": 1009,
    "member_update": 1010,
    "role_create": 1011,
    "role_delete": 1012,
    "role_update": 1013,
    "voice_state_update": 1014,
    "emoji_create": 1015,
    "emoji_delete": 1016,
    "emoji_update": 1017,
    "sticker_create": 1018,
    "sticker_delete": 1019,
    "sticker_update": 1020,
}


def message_type_metadata(kind: str, body: Any) -> Dict[str, Any]:
    raw = body.get("type", 0) if isinstance(body, dict) else 0
    try:
        number = int(raw)
    except (TypeError, ValueError):
        number = 0
    return {"type": number, "type_code": MESSAGE_TYPES.get(number, "UNKNOWN")}


def fixed_type_metadata(kind: str, body: Any) -> Dict[str, Any]:
    return {"type": EVENT_TYPE_CODES[kind], "type_code": kind.upper()}


@dataclass(frozen=True)
class EventKind:
    name: str
    metadata_builder: Callable[[str, Any], Dict[str, Any]] = field(compare=False)
    definition_id: int = settings.EVENT_DEFINITION_ID

    def metadata(self, body: Any) -> Dict[str, Any]:
        """Type tags plus a processing timestamp for the ``_metadata`` block."""
        metadata = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "kind": self.name,
        }
        metadata.update(self.metadata_builder(self.name, body))
        return metadata


EVENT_KINDS: Dict[str, EventKind] = {"message_create": EventKind("message_create", message_type_metadata)}
EVENT_KINDS.update({name: EventKind(name, fixed_type_metadata) for name in EVENT_TYPE_CODES})


def get_event_kind(name: str) -> EventKind:
    try:
        return EVENT_KINDS[name]
    except KeyError:
        raise UnknownEventKindError(f"Unknown event kind: {name!r}") from None
