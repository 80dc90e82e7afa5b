"""Config store -- discovers what an instance supports.

Fetches the capability descriptor at ``<cloud_url><config_path>`` and
parses it into a :class:`~ccauth.models.CloudConfig`. The descriptor is
either plain JSON or the ``window.CONFIG = {...};`` script some instances
serve to their own web UI.

There is no retry: a failed load ends in Error and the caller decides
whether to try again.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError

from ccauth.client.async_client import CloudClient, error_detail
from ccauth.exceptions import ConfigError
from ccauth.models import CloudConfig, Settings
from ccauth.stores.base import AsyncStore, StoreState

_SCRIPT_RE = re.compile(r"^\s*window\.CONFIG\s*=\s*(\{.*\})\s*;?\s*$", re.DOTALL)


def parse_descriptor(text: str) -> dict[str, Any]:
    """Parse descriptor text served as JSON or as a ``window.CONFIG`` script.

    Raises:
        ConfigError: If no JSON object can be extracted.
    """
    match = _SCRIPT_RE.match(text)
    payload = match.group(1) if match else text
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Instance config is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Instance config is not a JSON object")
    return data


class ConfigStore(AsyncStore):
    """Loads the capability descriptor of one instance.

    After a successful load, :attr:`data` is a
    :class:`~ccauth.models.CloudConfig` and :attr:`cloud_url` is the URL it
    was loaded from.
    """

    name = "config"

    def __init__(self, client: CloudClient, settings: Settings) -> None:
        super().__init__()
        self._client = client
        self._settings = settings
        self.cloud_url: str | None = None

    @property
    def config(self) -> CloudConfig | None:
        return self.data

    async def load(self, url: str) -> StoreState:  # type: ignore[override]
        """Fetch and parse the descriptor for *url*.

        Transport failures end in :class:`~ccauth.exceptions.NetworkError`;
        error statuses and unparseable bodies in
        :class:`~ccauth.exceptions.ConfigError`.
        """
        return await super().load(lambda: self._fetch(url))

    def reset(self) -> bool:
        if not self.loading:
            self.cloud_url = None
        return super().reset()

    async def _fetch(self, url: str) -> CloudConfig:
        self.cloud_url = url
        config_url = f"{url.rstrip('/')}{self._settings.config_path}"
        response = await self._client.get(config_url)
        if response.status_code >= 400:
            raise ConfigError(
                f"Failed to load instance config from {config_url}: {error_detail(response)}"
            )

        data = parse_descriptor(response.text)
        try:
            return CloudConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid instance config at {config_url}: {exc}") from exc
