"""Canonical Pydantic models shared across all ccauth modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`Settings`, and :class:`Preferences`.

**Wire models** -- parsed from (or sent to) the remote instance:
    :class:`CloudConfig`, :class:`TokenSet`, :class:`OAuthCallback`,
    :class:`ClusterSummary`, :class:`ClusterResult`, and
    :class:`ClusterDataset`.

**Deep-link events** -- produced by :class:`~ccauth.deeplink.DeepLinkDispatcher`:
    :class:`ActivateClusterEvent`, :class:`AddClustersEvent`,
    :class:`KubeConfigEvent`, and :class:`OAuthCodeEvent`.

All models use Pydantic v2. Models that mirror remote payloads use
``extra="allow"`` so that unknown keys are preserved in ``model_extra``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every call against an instance."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class Settings(BaseModel):
    """User-wide settings persisted at ``~/.config/ccauth/settings.json``.

    Loaded by :func:`~ccauth.config.load_settings`, where environment
    variables take precedence over the file.
    """

    client_id: str = Field(
        default="lens", description="OAuth client ID registered with the identity provider"
    )
    redirect_uri: str = Field(
        default="lens://extensions/ccauth/oauth/code",
        description="Redirect URI the identity provider sends the browser to",
    )
    scopes: list[str] = Field(default_factory=lambda: ["openid"])
    config_path: str = Field(
        default="/config.json",
        description="Path of the capability descriptor relative to the instance URL",
    )
    request: RequestConfig = Field(default_factory=RequestConfig)


class Preferences(BaseModel):
    """Remembered user choices, persisted at ``~/.config/ccauth/preferences.json``."""

    cloud_url: Optional[str] = Field(
        default=None, description="Last instance URL the user accessed"
    )


# --- Instance config descriptor ---


class CloudConfig(BaseModel):
    """Capability descriptor served by a remote instance.

    Only the keys needed for authentication are declared; everything else
    the instance sends is kept in ``model_extra``.

    Example::

        CloudConfig.model_validate({
            "keycloakLogin": True,
            "keycloakUrl": "https://kc.example.com/auth/realms/iam",
            "clientId": "lens",
        })
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    sso_required: bool = Field(default=False, alias="keycloakLogin")
    issuer_url: Optional[str] = Field(
        default=None,
        alias="keycloakUrl",
        description="Identity provider issuer (realm) URL",
    )
    client_id: Optional[str] = Field(default=None, alias="clientId")
    authorization_endpoint: Optional[str] = Field(
        default=None, alias="authorizationEndpoint"
    )
    token_endpoint: Optional[str] = Field(default=None, alias="tokenEndpoint")

    def authorization_url(self) -> Optional[str]:
        """Return the authorization endpoint, derived from the issuer when not explicit."""
        if self.authorization_endpoint:
            return self.authorization_endpoint
        if self.issuer_url:
            return f"{self.issuer_url.rstrip('/')}/protocol/openid-connect/auth"
        return None

    def token_url(self, cloud_url: str) -> str:
        """Return the token endpoint, falling back to the instance itself."""
        if self.token_endpoint:
            return self.token_endpoint
        if self.issuer_url:
            return f"{self.issuer_url.rstrip('/')}/protocol/openid-connect/token"
        return f"{cloud_url.rstrip('/')}/oauth/token"


# --- Tokens ---


class TokenSet(BaseModel):
    """Tokens issued by the token endpoint.

    Expiry times are absolute UTC datetimes computed from the relative
    ``expires_in`` / ``refresh_expires_in`` values of the response.
    """

    access_token: str
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    refresh_expires_at: Optional[datetime] = None

    @classmethod
    def from_response(
        cls, body: dict[str, Any], now: Optional[datetime] = None
    ) -> TokenSet:
        """Build a token set from a token endpoint JSON response.

        Args:
            body: Parsed JSON body. Must contain ``access_token``.
            now: Reference time for relative expiries (defaults to now, UTC).

        Raises:
            KeyError: If ``access_token`` is missing.
        """
        now = now or datetime.now(timezone.utc)

        def _absolute(seconds: Any) -> Optional[datetime]:
            if seconds is None:
                return None
            return now + timedelta(seconds=float(seconds))

        return cls(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            id_token=body.get("id_token"),
            expires_at=_absolute(body.get("expires_in")),
            refresh_expires_at=_absolute(body.get("refresh_expires_in")),
        )


class OAuthCallback(BaseModel):
    """Parameters delivered to the redirect URI by the identity provider."""

    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


# --- Cluster inventory ---


def _object_field(parent: dict[str, Any], key: str, label: Optional[str] = None) -> dict[str, Any]:
    """Return ``parent[key]`` as a dict; a missing or null value reads as ``{}``.

    Raises:
        ValueError: If the value is present but not an object.
    """
    value = parent.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"cluster item {label or key} is not an object")
    return value


class ClusterSummary(BaseModel):
    """One cluster as listed by the inventory endpoint."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    namespace: str
    ready: bool = False

    @classmethod
    def from_resource(cls, item: Any) -> ClusterSummary:
        """Build a summary from a Kubernetes-style cluster resource.

        Raises:
            ValueError: If the item, its ``metadata``, ``status`` or
                ``status.providerStatus`` is not an object, or it lacks
                ``metadata.name``.
        """
        if not isinstance(item, dict):
            raise ValueError("cluster item is not an object")
        metadata = _object_field(item, "metadata")
        name = metadata.get("name")
        if not name:
            raise ValueError("cluster item has no metadata.name")
        status = _object_field(item, "status")
        provider_status = _object_field(status, "providerStatus", "status.providerStatus")
        return cls(
            id=metadata.get("uid") or name,
            name=name,
            namespace=metadata.get("namespace") or "",
            ready=bool(provider_status.get("ready", False)),
        )


class ClusterResult(BaseModel):
    """Outcome of enumerating a single cluster (or a whole namespace that failed)."""

    namespace: str
    cluster: Optional[ClusterSummary] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.cluster is not None


class ClusterDataset(BaseModel):
    """Partial-failure tolerant cluster inventory."""

    namespaces: list[str] = Field(default_factory=list)
    results: list[ClusterResult] = Field(default_factory=list)

    @property
    def clusters(self) -> list[ClusterSummary]:
        return [r.cluster for r in self.results if r.ok and r.cluster is not None]

    @property
    def failures(self) -> list[ClusterResult]:
        return [r for r in self.results if not r.ok]


# --- Deep-link events ---


class ActivateClusterEvent(BaseModel):
    """Request to activate a cluster already known to the console."""

    type: Literal["activateCluster"] = "activateCluster"
    cloud_url: Optional[str] = None
    namespace: Optional[str] = None
    cluster_name: Optional[str] = None
    cluster_id: Optional[str] = None


class AddClustersEvent(BaseModel):
    """Bulk add of clusters with the tokens needed to reach them."""

    type: Literal["addClusters"] = "addClusters"
    cloud_url: Optional[str] = None
    username: Optional[str] = None
    tokens: Any = None


class KubeConfigEvent(BaseModel):
    """Delivery of a ready-made kubeconfig for one cluster."""

    type: Literal["kubeConfig"] = "kubeConfig"
    cloud_url: Optional[str] = None
    namespace: Optional[str] = None
    cluster_name: Optional[str] = None
    cluster_id: Optional[str] = None
    kube_config: Any = None


class OAuthCodeEvent(BaseModel):
    """Redirect from the identity provider at the end of the browser leg."""

    type: Literal["oauth/code"] = "oauth/code"
    callback: OAuthCallback
