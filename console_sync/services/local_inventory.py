"""
Local agent inventory service.

Lists the resources the local QEMU/Docker agent currently holds. Every
list is the complete current set for its kind; anything short of a
well-formed answer raises FetchFailed so that a broken agent is never
mistaken for an empty one.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from console_sync.errors import FetchFailed, MalformedIdentifier
from console_sync.models.resources import LocalResource, ResourceKind, spec_for
from console_sync.services.natural_keys import format_disk_id
from console_sync.utils import _response_excerpt, _safe_json_parse

logger = logging.getLogger(__name__)


# kind -> (endpoint, collection key in the JSON answer)
AGENT_ENDPOINTS = {
    ResourceKind.VM: ("/api/vms", "vms"),
    ResourceKind.DISK: ("/api/disks", "disks"),
    ResourceKind.DOCKERFILE: ("/api/dockerfiles", "dockerfiles"),
    ResourceKind.IMAGE: ("/api/docker/images", "images"),
    ResourceKind.CONTAINER: ("/api/docker/containers", "containers"),
}


class LocalAgentClient:
    """Thin HTTP wrapper around the local agent's list endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: int = 30,
        verify_ssl: bool = True,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.session = session or requests.Session()

    def fetch_collection(
        self,
        path: str,
        collection: str,
        params: Optional[Dict[str, str]] = None
    ) -> List[Dict[str, Any]]:
        """
        GET an agent list endpoint and return its collection.

        Args:
            path: Endpoint path (e.g. /api/vms)
            collection: Key holding the list in the JSON answer
            params: Optional query parameters

        Returns:
            The raw list of resource dicts (possibly empty)

        Raises:
            FetchFailed: agent unreachable or answer malformed
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout, verify=self.verify_ssl)
        except requests.RequestException as e:
            raise FetchFailed(f"Local agent unreachable at {url}: {e}") from e

        if response.status_code != 200:
            raise FetchFailed(
                f"Local agent answered {response.status_code} for {path}: {_response_excerpt(response)}",
                status_code=502
            )

        payload = _safe_json_parse(response)
        if not isinstance(payload, dict):
            raise FetchFailed(f"Local agent returned a non-JSON answer for {path}")
        if payload.get("success") is False:
            raise FetchFailed(f"Local agent reported failure for {path}: {payload.get('message', 'unknown error')}")
        if collection not in payload:
            raise FetchFailed(f"Local agent answer for {path} has no '{collection}' list")

        items = payload[collection]
        if not isinstance(items, list):
            raise FetchFailed(f"Local agent '{collection}' for {path} is not a list")
        return items

    def ping(self) -> bool:
        """Check the agent answers its VM listing."""
        try:
            self.fetch_collection(*AGENT_ENDPOINTS[ResourceKind.VM])
            return True
        except FetchFailed as e:
            logger.debug(f"Agent ping failed: {e}")
            return False


class LocalInventoryAdapter:
    """Lists local resources of one kind."""

    def __init__(self, kind: ResourceKind, agent: LocalAgentClient):
        self.kind = ResourceKind(kind)
        self.agent = agent
        self.spec = spec_for(self.kind)

    async def list(self, user_id: Optional[str] = None) -> List[LocalResource]:
        return await asyncio.to_thread(self._list_sync, user_id)

    def _list_sync(self, user_id: Optional[str]) -> List[LocalResource]:
        path, collection = AGENT_ENDPOINTS[self.kind]
        params = None
        if self.kind == ResourceKind.DISK and user_id:
            params = {"user_id": user_id}

        items = self.agent.fetch_collection(path, collection, params=params)
        resources = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise FetchFailed(f"Local agent returned a non-object {self.kind.value} at index {index}")
            try:
                resources.append(self._parse(item))
            except ValidationError as e:
                raise FetchFailed(f"Local agent returned an invalid {self.kind.value} at index {index}: {e}") from e

        logger.debug(f"Local agent reported {len(resources)} {self.kind.value}(s)")
        return resources

    def _parse(self, item: Dict[str, Any]) -> LocalResource:
        if self.kind == ResourceKind.DISK and not item.get("id"):
            item = dict(item)
            try:
                item["id"] = format_disk_id(item.get("name"), item.get("format"))
            except MalformedIdentifier:
                # left for the deriver to report against this record
                item["id"] = ""
        return self.spec.model.model_validate(item)


def build_inventory_adapters(agent: LocalAgentClient) -> Dict[ResourceKind, LocalInventoryAdapter]:
    """One adapter per kind, all sharing the same agent client."""
    return {kind: LocalInventoryAdapter(kind, agent) for kind in ResourceKind}
