"""Convenience exports for service layer."""
from .channel_service import (
    ChannelTarget,
    channel_members,
    check_identity_id,
    direct_channel_key,
    ensure_direct_channel,
    get_channel,
    group_channel_key,
    parse_direct_key,
    resolve,
)
from .chat_session import ChatSession
from .friendship_service import (
    add_friend,
    display_name,
    list_friend_edges,
    list_friends,
    prune_stale_edges,
    remove_friend,
    set_nickname,
)
from .group_service import (
    add_members,
    create_group,
    delete_group,
    get_group,
    is_visible_to,
    list_groups,
    remove_member,
    remove_self,
    rename_group,
    watch_groups,
)
from .identity_service import (
    allocate_tag,
    change_username,
    find_identity,
    format_handle,
    get_identity,
    normalize_username,
    register_identity,
    update_profile,
)
from .live import LiveValue
from .message_service import (
    MessageSubscription,
    get_message,
    latest_message,
    list_messages,
    load_channel,
    send_message,
    subscribe_messages,
    toggle_reaction,
)
from .presence_service import PresenceSession, PresenceState, format_last_seen, set_offline, set_online
from .receipt_service import record_view, seen_status
from .reconciliation_service import (
    AsymmetricEdge,
    ReconcileError,
    ReconcileSummary,
    find_asymmetric_edges,
    perform_reconciliation,
    reconcile_friend_edges,
    run_reconciliation,
)
from .session_service import create_session_token, decode_session_token, get_current_user_id
from .sidebar_service import SidebarFeed, build_sidebar, rank_conversations
from .unread_service import on_send, on_view, unread_count, unread_counts

__all__ = [
    "ChannelTarget",
    "channel_members",
    "check_identity_id",
    "direct_channel_key",
    "ensure_direct_channel",
    "get_channel",
    "group_channel_key",
    "parse_direct_key",
    "resolve",
    "ChatSession",
    "add_friend",
    "display_name",
    "list_friend_edges",
    "list_friends",
    "prune_stale_edges",
    "remove_friend",
    "set_nickname",
    "add_members",
    "create_group",
    "delete_group",
    "get_group",
    "is_visible_to",
    "list_groups",
    "remove_member",
    "remove_self",
    "rename_group",
    "watch_groups",
    "allocate_tag",
    "change_username",
    "find_identity",
    "format_handle",
    "get_identity",
    "normalize_username",
    "register_identity",
    "update_profile",
    "LiveValue",
    "MessageSubscription",
    "get_message",
    "latest_message",
    "list_messages",
    "load_channel",
    "send_message",
    "subscribe_messages",
    "toggle_reaction",
    "PresenceSession",
    "PresenceState",
    "format_last_seen",
    "set_offline",
    "set_online",
    "record_view",
    "seen_status",
    "AsymmetricEdge",
    "ReconcileError",
    "ReconcileSummary",
    "find_asymmetric_edges",
    "perform_reconciliation",
    "reconcile_friend_edges",
    "run_reconciliation",
    "create_session_token",
    "decode_session_token",
    "get_current_user_id",
    "SidebarFeed",
    "build_sidebar",
    "rank_conversations",
    "on_send",
    "on_view",
    "unread_count",
    "unread_counts",
]
