from __future__ import annotations

TICKET_STATUS_OPEN = "open"
TICKET_STATUS_CLOSED = "closed"
TICKET_STATUS_DELETED = "deleted"

# Legal status edges. Nothing leaves "deleted".
TICKET_TRANSITIONS: dict[str, frozenset[str]] = {
    TICKET_STATUS_OPEN: frozenset({TICKET_STATUS_CLOSED, TICKET_STATUS_DELETED}),
    TICKET_STATUS_CLOSED: frozenset({TICKET_STATUS_OPEN, TICKET_STATUS_DELETED}),
    TICKET_STATUS_DELETED: frozenset(),
}

ACTION_CLOSED = "closed"
ACTION_REOPENED = "reopened"
ACTION_DELETED = "deleted"

TICKET_ACTIONS = (ACTION_CLOSED, ACTION_REOPENED, ACTION_DELETED)

# Discord API error codes treated as "resource no longer exists". Missing Access
# (50001) is not one of them: the resource is still there, the bot cannot reach it.
UNKNOWN_CHANNEL_CODE = 10003
UNKNOWN_MESSAGE_CODE = 10008
UNKNOWN_USER_CODE = 10013
UNKNOWN_MEMBER_CODE = 10007
CANNOT_DM_USER_CODE = 50007
MISSING_ACCESS_CODE = 50001
MISSING_RESOURCE_CODES = frozenset(
    {
        UNKNOWN_CHANNEL_CODE,
        UNKNOWN_MESSAGE_CODE,
        UNKNOWN_USER_CODE,
        UNKNOWN_MEMBER_CODE,
        CANNOT_DM_USER_CODE,
    }
)

TRANSCRIPT_MESSAGE_LIMIT = 100
SYSTEM_AUTHOR_ID = "system"
SYSTEM_AUTHOR_NAME = "System"
PLACEHOLDER_CHANNEL_MISSING_ID = "placeholder"
PLACEHOLDER_NO_MESSAGES_ID = "no-messages"

DELETE_BUTTON_PREFIX = "delete_ticket_"

CHANNEL_MISSING_NOTE = "Channel deleted or inaccessible"
CHANNEL_ORPHANED_NOTE = "Channel deletion failed; channel may be orphaned"
