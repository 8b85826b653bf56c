"""Notice taxonomy: the closed set of notice kinds and their payload schemas.

Each kind has exactly one payload model. Attribute names are snake_case in
Python and camelCase on the wire. New kinds may be added; existing schemas
must not change, since long-lived consumers decode them by kind.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class NoticeType(str, Enum):
    """Notice kinds, valued by their wire name."""

    INFO = "Info"
    ALERT = "Alert"
    ERROR = "Error"
    CORE_VERSION = "CoreVersion"
    CANDIDATE_SERVERS = "CandidateServers"
    CONNECTING_SERVER = "ConnectingServer"
    ACTIVE_TUNNEL = "ActiveTunnel"
    SOCKS_PROXY_PORT_IN_USE = "SocksProxyPortInUse"
    LISTENING_SOCKS_PROXY_PORT = "ListeningSocksProxyPort"
    HTTP_PROXY_PORT_IN_USE = "HttpProxyPortInUse"
    LISTENING_HTTP_PROXY_PORT = "ListeningHttpProxyPort"
    CLIENT_UPGRADE_AVAILABLE = "ClientUpgradeAvailable"
    HOMEPAGE = "Homepage"
    TUNNELS = "Tunnels"
    UNTUNNELED = "Untunneled"
    SPLIT_TUNNEL_REGION = "SplitTunnelRegion"


class NoticePayload(BaseModel):
    """Base for the kind-specific ``data`` object of a notice."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True, extra="ignore")

    notice_type: ClassVar[NoticeType]
    show_user: ClassVar[bool] = False

    def data(self) -> dict[str, Any]:
        """Return the payload keyed by wire field names."""
        return self.model_dump(by_alias=True)


class _MessageNotice(NoticePayload):
    message: str


class InfoNotice(_MessageNotice):
    """Informational message."""

    notice_type = NoticeType.INFO


class AlertNotice(_MessageNotice):
    """Alert message; typically a recoverable error condition."""

    notice_type = NoticeType.ALERT


class ErrorNotice(_MessageNotice):
    """Error message; typically an unrecoverable error condition."""

    notice_type = NoticeType.ERROR
    show_user = True


class CoreVersionNotice(NoticePayload):
    """Version string of the core."""

    notice_type = NoticeType.CORE_VERSION

    version: str


class CandidateServersNotice(NoticePayload):
    """How many servers are available for the selected region and protocol."""

    notice_type = NoticeType.CANDIDATE_SERVERS

    region: str
    protocol: str
    count: int


class ConnectingServerNotice(NoticePayload):
    """Details on a connection attempt."""

    notice_type = NoticeType.CONNECTING_SERVER

    ip_address: str
    region: str
    protocol: str
    fronting_address: str


class ActiveTunnelNotice(NoticePayload):
    """A successful connection now used as an active tunnel for port forwarding."""

    notice_type = NoticeType.ACTIVE_TUNNEL

    ip_address: str


class SocksProxyPortInUseNotice(NoticePayload):
    """The configured local SOCKS proxy port could not be used."""

    notice_type = NoticeType.SOCKS_PROXY_PORT_IN_USE
    show_user = True

    port: int


class ListeningSocksProxyPortNotice(NoticePayload):
    """Port selected for the listening local SOCKS proxy."""

    notice_type = NoticeType.LISTENING_SOCKS_PROXY_PORT

    port: int


class HttpProxyPortInUseNotice(NoticePayload):
    """The configured local HTTP proxy port could not be used."""

    notice_type = NoticeType.HTTP_PROXY_PORT_IN_USE
    show_user = True

    port: int


class ListeningHttpProxyPortNotice(NoticePayload):
    """Port selected for the listening local HTTP proxy."""

    notice_type = NoticeType.LISTENING_HTTP_PROXY_PORT

    port: int


class ClientUpgradeAvailableNotice(NoticePayload):
    """A client upgrade is available, as reported by the handshake."""

    notice_type = NoticeType.CLIENT_UPGRADE_AVAILABLE

    version: str


class HomepageNotice(NoticePayload):
    """Sponsor homepage the client should display, as reported by the handshake."""

    notice_type = NoticeType.HOMEPAGE

    url: str


class TunnelsNotice(NoticePayload):
    """Number of active tunnels.

    ``count == 0`` means disconnected and ``count >= 1`` means connected;
    consumers derive connect/disconnect transitions from changes in this value.
    """

    notice_type = NoticeType.TUNNELS

    count: int


class UntunneledNotice(NoticePayload):
    """An address was classified as untunneled and is accessed directly.

    ``address`` is private: alert the user with it, keep it out of diagnostics.
    """

    notice_type = NoticeType.UNTUNNELED
    show_user = True

    address: str


class SplitTunnelRegionNotice(NoticePayload):
    """Split tunnel is on for the given region."""

    notice_type = NoticeType.SPLIT_TUNNEL_REGION
    show_user = True

    region: str


PAYLOAD_MODELS: dict[NoticeType, type[NoticePayload]] = {
    model.notice_type: model
    for model in (
        InfoNotice,
        AlertNotice,
        ErrorNotice,
        CoreVersionNotice,
        CandidateServersNotice,
        ConnectingServerNotice,
        ActiveTunnelNotice,
        SocksProxyPortInUseNotice,
        ListeningSocksProxyPortNotice,
        HttpProxyPortInUseNotice,
        ListeningHttpProxyPortNotice,
        ClientUpgradeAvailableNotice,
        HomepageNotice,
        TunnelsNotice,
        UntunneledNotice,
        SplitTunnelRegionNotice,
    )
}

SENSITIVE_NOTICE_TYPES: frozenset[NoticeType] = frozenset({NoticeType.UNTUNNELED})


def payload_model(notice_type: NoticeType | str) -> type[NoticePayload]:
    """Return the payload model for ``notice_type`` (enum member or wire name)."""
    try:
        return PAYLOAD_MODELS[NoticeType(notice_type)]
    except ValueError as exc:
        raise KeyError(f"Unknown notice type: {notice_type}") from exc


def is_diagnostic_safe(notice_type: NoticeType | str) -> bool:
    """Whether notices of this kind may be copied into diagnostic logs.

    For consumers that archive the notice stream. The package itself never
    logs notice payloads: its log bridge turns log records into notices, not
    notices into log records.
    """
    try:
        return NoticeType(notice_type) not in SENSITIVE_NOTICE_TYPES
    except ValueError:
        return True
