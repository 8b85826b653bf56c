"""Structured notice stream for a tunnel client core: typed emission and stream reassembly."""

__version__ = "0.1.0"

from .console import NoticeConsoleRewriter, new_console_rewriter
from .emitter import (
    NoticeEmitter,
    get_default_emitter,
    notice_active_tunnel,
    notice_alert,
    notice_candidate_servers,
    notice_client_upgrade_available,
    notice_connecting_server,
    notice_core_version,
    notice_error,
    notice_homepage,
    notice_http_proxy_port_in_use,
    notice_info,
    notice_listening_http_proxy_port,
    notice_listening_socks_proxy_port,
    notice_socks_proxy_port_in_use,
    notice_split_tunnel_region,
    notice_tunnels,
    notice_untunneled,
    open_notice_output,
    set_notice_output,
)
from .envelope import DecodedNotice, NoticeDecodeError, NoticeEnvelope, decode_envelope, decode_payload, extract_field
from .models import NoticePayload, NoticeType, payload_model
from .receiver import NoticeReceiver, pump
from .tunnels import TunnelStateMonitor, TunnelTransition, extract_tunnel_count

__all__ = [
    "DecodedNotice",
    "NoticeConsoleRewriter",
    "NoticeDecodeError",
    "NoticeEmitter",
    "NoticeEnvelope",
    "NoticePayload",
    "NoticeReceiver",
    "NoticeType",
    "TunnelStateMonitor",
    "TunnelTransition",
    "__version__",
    "decode_envelope",
    "decode_payload",
    "extract_field",
    "extract_tunnel_count",
    "get_default_emitter",
    "new_console_rewriter",
    "notice_active_tunnel",
    "notice_alert",
    "notice_candidate_servers",
    "notice_client_upgrade_available",
    "notice_connecting_server",
    "notice_core_version",
    "notice_error",
    "notice_homepage",
    "notice_http_proxy_port_in_use",
    "notice_info",
    "notice_listening_http_proxy_port",
    "notice_listening_socks_proxy_port",
    "notice_socks_proxy_port_in_use",
    "notice_split_tunnel_region",
    "notice_tunnels",
    "notice_untunneled",
    "open_notice_output",
    "payload_model",
    "pump",
    "set_notice_output",
]
