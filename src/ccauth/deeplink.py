"""Deep-link dispatcher -- decodes OS-level protocol callbacks into events.

The operating system hands ccauth URIs such as::

    lens://extensions/ccauth/addClusters?cloudUrl=...&username=...&tokens=<base64 JSON>

:class:`DeepLinkDispatcher` matches the route at the end of the URI path,
decodes the query into one of the event models from :mod:`ccauth.models`
and delivers it to every subscriber. Four routes are understood:

================  ==========================================================
``activateCluster``  cloudUrl, namespace, clusterName, clusterId
``addClusters``      cloudUrl, username, tokens (base64 JSON)
``kubeConfig``       cloudUrl, namespace, clusterName, clusterId,
                     kubeConfig (base64 JSON)
``oauth/code``       code, state, error, error_description
================  ==========================================================

Inbound links are untrusted. A payload that is not base64 or not JSON is
logged and the event is dropped; nothing is raised to the caller and no
subscriber is called. Links with an unknown route are dropped too.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any, Callable, Optional, Union
from urllib.parse import parse_qs, urlsplit

from ccauth.exceptions import DecodeError
from ccauth.models import (
    ActivateClusterEvent,
    AddClustersEvent,
    KubeConfigEvent,
    OAuthCallback,
    OAuthCodeEvent,
)

logger = logging.getLogger(__name__)

EXT_EVENT_ACTIVATE_CLUSTER = "activateCluster"
EXT_EVENT_ADD_CLUSTERS = "addClusters"
EXT_EVENT_KUBECONFIG = "kubeConfig"
EXT_EVENT_OAUTH_CODE = "oauth/code"

DeepLinkEvent = Union[ActivateClusterEvent, AddClustersEvent, KubeConfigEvent, OAuthCodeEvent]
EventHandler = Callable[[DeepLinkEvent], None]


def decode_payload(value: Optional[str]) -> Any:
    """Decode a base64-encoded JSON query value.

    Spaces are read as ``+`` (form decoding of an unescaped ``+``) and
    missing padding is tolerated.

    Raises:
        DecodeError: If the value is empty, not base64, or not JSON.
    """
    if not value:
        raise DecodeError("payload is empty")
    value = value.strip().replace(" ", "+")
    value += "=" * ((4 - len(value) % 4) % 4)
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"payload is not valid base64: {exc}") from exc
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise DecodeError(f"payload is not valid JSON: {exc}") from exc


class DeepLinkDispatcher:
    """Routes inbound protocol URIs to subscribers as typed events.

    Example::

        dispatcher = DeepLinkDispatcher()
        dispatcher.subscribe(print)
        dispatcher.dispatch("lens://extensions/ccauth/oauth/code?code=abc&state=xyz")
    """

    _ROUTES = (
        EXT_EVENT_OAUTH_CODE,
        EXT_EVENT_ACTIVATE_CLUSTER,
        EXT_EVENT_ADD_CLUSTERS,
        EXT_EVENT_KUBECONFIG,
    )

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register *handler* and return a callable that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def dispatch(self, uri: str) -> Optional[DeepLinkEvent]:
        """Decode *uri* and deliver the event to all subscribers.

        Returns:
            The delivered event, or ``None`` when the link was dropped.
        """
        try:
            event = self.decode(uri)
        except DecodeError as exc:
            logger.error("Dropping deep link: %s", exc)
            return None

        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Deep link handler failed for %s event", event.type)
        return event

    def decode(self, uri: str) -> DeepLinkEvent:
        """Decode *uri* into an event without delivering it.

        Raises:
            DecodeError: For unknown routes and malformed payloads.
        """
        parts = urlsplit(uri)
        target = f"{parts.netloc}{parts.path}".rstrip("/")
        route = next(
            (r for r in self._ROUTES if target == r or target.endswith(f"/{r}")),
            None,
        )
        if route is None:
            raise DecodeError(f"unknown deep link route in {uri!r}")

        query = {k: v[0] for k, v in parse_qs(parts.query, keep_blank_values=True).items()}

        if route == EXT_EVENT_OAUTH_CODE:
            return OAuthCodeEvent(
                callback=OAuthCallback(
                    code=query.get("code") or None,
                    state=query.get("state") or None,
                    error=query.get("error") or None,
                    error_description=query.get("error_description") or None,
                )
            )

        if route == EXT_EVENT_ACTIVATE_CLUSTER:
            return ActivateClusterEvent(
                cloud_url=query.get("cloudUrl"),
                namespace=query.get("namespace"),
                cluster_name=query.get("clusterName"),
                cluster_id=query.get("clusterId"),
            )

        if route == EXT_EVENT_ADD_CLUSTERS:
            try:
                tokens = decode_payload(query.get("tokens"))
            except DecodeError as exc:
                raise DecodeError(f"failed to decode tokens: {exc}") from exc
            return AddClustersEvent(
                cloud_url=query.get("cloudUrl"),
                username=query.get("username"),
                tokens=tokens,
            )

        try:
            kube_config = decode_payload(query.get("kubeConfig"))
        except DecodeError as exc:
            raise DecodeError(f"failed to decode kubeConfig: {exc}") from exc
        return KubeConfigEvent(
            cloud_url=query.get("cloudUrl"),
            namespace=query.get("namespace"),
            cluster_name=query.get("clusterName"),
            cluster_id=query.get("clusterId"),
            kube_config=kube_config,
        )
