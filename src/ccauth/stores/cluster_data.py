"""Cluster-data store -- fetches the cluster inventory of a signed-in session.

The inventory is gathered in two steps: list the namespaces the user can
see, then list the clusters of every namespace concurrently. Only a failure
of the first step fails the load. A namespace whose listing fails, or a
cluster item that cannot be parsed, becomes a failed
:class:`~ccauth.models.ClusterResult` next to the successful ones.

Expired access tokens are renewed with the refresh token before fetching.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from ccauth.auth.client import AuthClient
from ccauth.auth.session import Session
from ccauth.client.async_client import CloudClient, error_detail
from ccauth.exceptions import CcauthError, CredentialError, NetworkError
from ccauth.models import ClusterDataset, ClusterResult, ClusterSummary, CloudConfig, Settings, TokenSet
from ccauth.stores.base import AsyncStore, StoreState

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Your session has expired. Sign in again."


class ClusterDataStore(AsyncStore):
    """Loads a :class:`~ccauth.models.ClusterDataset` for one instance."""

    name = "cluster-data"

    def __init__(self, client: CloudClient, settings: Settings) -> None:
        super().__init__()
        self._client = client
        self._settings = settings

    @property
    def dataset(self) -> Optional[ClusterDataset]:
        return self.data

    async def load(  # type: ignore[override]
        self,
        url: str,
        config: CloudConfig,
        session: Session,
    ) -> StoreState:
        """Fetch the inventory of *url* with the credentials in *session*.

        The session is borrowed for the whole fetch and may be updated with
        refreshed tokens.
        """
        return await super().load(lambda: self._fetch(url, config, session))

    async def _fetch(self, url: str, config: CloudConfig, session: Session) -> ClusterDataset:
        with session.lend(self.name) as borrowed:
            if borrowed.token_expired():
                await self._refresh(url, config, borrowed)

            headers = borrowed.auth_headers()
            base = url.rstrip("/")
            namespaces = await self._list_namespaces(base, headers)
            per_namespace = await asyncio.gather(
                *(self._list_clusters(base, ns, headers) for ns in namespaces)
            )

        results = [result for batch in per_namespace for result in batch]
        dataset = ClusterDataset(namespaces=namespaces, results=results)
        if dataset.failures:
            logger.warning(
                "Loaded %d clusters from %s with %d failures",
                len(dataset.clusters),
                url,
                len(dataset.failures),
            )
        return dataset

    async def _refresh(self, url: str, config: CloudConfig, session: Session) -> None:
        old = session.tokens
        if old is None or session.refresh_expired():
            raise CredentialError(SESSION_EXPIRED_MESSAGE)

        auth_client = AuthClient(self._client, self._settings, config, cloud_url=url)
        try:
            body = await auth_client.refresh_token(old.refresh_token or "")
        except CredentialError as exc:
            logger.error("Token refresh at %s rejected: %s", url, exc)
            raise CredentialError(SESSION_EXPIRED_MESSAGE) from exc

        tokens = TokenSet.from_response(body)
        # refresh responses may omit tokens that are still valid
        session.tokens = tokens.model_copy(
            update={
                "refresh_token": tokens.refresh_token or old.refresh_token,
                "id_token": tokens.id_token or old.id_token,
            }
        )
        logger.debug("Refreshed access token for %s", url)

    async def _get_items(self, url: str, headers: dict[str, str]) -> list[Any]:
        response = await self._client.get(url, headers=headers)
        if response.status_code in (401, 403):
            raise CredentialError(f"Access denied: {error_detail(response)}")
        if response.status_code >= 400:
            raise NetworkError(f"GET {url} failed: {error_detail(response)}")
        try:
            body = response.json()
        except ValueError as exc:
            raise NetworkError(f"GET {url} returned invalid JSON") from exc
        items = body.get("items") if isinstance(body, dict) else body
        if not isinstance(items, list):
            raise NetworkError(f"GET {url} returned no item list")
        return items

    async def _list_namespaces(self, base: str, headers: dict[str, str]) -> list[str]:
        items = await self._get_items(f"{base}/api/v1/namespaces", headers)
        names: list[str] = []
        for item in items:
            metadata = item.get("metadata") if isinstance(item, dict) else None
            name = metadata.get("name") if isinstance(metadata, dict) else None
            if isinstance(name, str) and name:
                names.append(name)
            else:
                logger.warning("Skipping malformed namespace item: %r", item)
        return names

    async def _list_clusters(
        self, base: str, namespace: str, headers: dict[str, str]
    ) -> list[ClusterResult]:
        try:
            items = await self._get_items(
                f"{base}/api/v1/namespaces/{namespace}/clusters", headers
            )
        except CcauthError as exc:
            logger.warning("Failed to list clusters in namespace %r: %s", namespace, exc)
            return [ClusterResult(namespace=namespace, error=str(exc))]

        results: list[ClusterResult] = []
        for item in items:
            try:
                cluster = ClusterSummary.from_resource(item)
            except ValueError as exc:
                logger.warning("Skipping malformed cluster in namespace %r: %s", namespace, exc)
                results.append(ClusterResult(namespace=namespace, error=str(exc)))
                continue
            results.append(ClusterResult(namespace=namespace, cluster=cluster))
        return results
