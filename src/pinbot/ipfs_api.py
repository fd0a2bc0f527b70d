"""
HTTP client for the IPFS (Kubo) RPC API.

This module provides direct HTTP access to the local node's RPC API
(default http://localhost:5001/api/v0), plus the asynchronous capability
object the pinning engine consumes.

API Reference: https://docs.ipfs.tech/reference/kubo/rpc/

Debug logging:
    Enable with: PINBOT_DEBUG=1 or by setting log level to DEBUG
    Example: PINBOT_DEBUG=1 pinbot run
"""

import asyncio
import json
import logging
import os
from urllib.parse import urlencode

import multihash
import requests

from pinbot.types import ObjectInfo, ObjectLink, ProviderRecord

# Configure logger for this module
logger = logging.getLogger(__name__)

# Enable debug logging via environment variable
if os.environ.get("PINBOT_DEBUG"):
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )
    logger.setLevel(logging.DEBUG)

# Extra seconds the HTTP socket waits beyond the node-side timeout
TIMEOUT_SLACK = 5


class IPFSAPIError(Exception):
    """Raised when the node's RPC API returns an error."""

    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class NetworkError(IPFSAPIError):
    """Lookup timed out, the node was unreachable, or the lookup was refused."""


class PinError(IPFSAPIError):
    """The node refused a pin request."""


class InvalidAddressError(ValueError):
    """A value is not a valid content address."""


def validate_address(candidate) -> str:
    """Return the cleaned base58 multihash address or raise InvalidAddressError."""
    if not isinstance(candidate, str):
        raise InvalidAddressError(f"address must be a string, not {type(candidate).__name__}")
    address = candidate.strip()
    if not address:
        raise InvalidAddressError("empty address")
    try:
        multihash.decode(multihash.from_b58_string(address))
    except (ValueError, TypeError, KeyError, IndexError, EOFError) as e:
        raise InvalidAddressError(f"invalid multihash '{address}': {e}") from e
    return address


def _format_timeout(seconds: float) -> str:
    """Kubo duration string for the global ?timeout= option."""
    return f"{int(seconds)}s" if float(seconds).is_integer() else f"{seconds}s"


class IPFSClient:
    """HTTP client for the Kubo RPC API."""

    def __init__(self, host: str = "localhost", port: int = 5001, protocol: str = "http"):
        """
        Initialize node client.

        Args:
            host: Hostname or IP of the IPFS node
            port: RPC API port (default 5001)
            protocol: "http" or "https"
        """
        self.base_url = f"{protocol}://{host}:{port}/api/v0"
        self.session = requests.Session()

    def _request(
        self,
        endpoint: str,
        params: dict = None,
        timeout: float = None,
        error_class: type = IPFSAPIError,
    ) -> requests.Response:
        """POST to an RPC endpoint; every Kubo RPC call is a POST."""
        query = dict(params or {})
        if timeout:
            query["timeout"] = _format_timeout(timeout)
        url = f"{self.base_url}{endpoint}"
        if query:
            url = f"{url}?{urlencode(query)}"

        logger.debug(f"Request: POST {url}")

        http_timeout = timeout + TIMEOUT_SLACK if timeout else None
        try:
            response = self.session.request("POST", url, timeout=http_timeout)
        except requests.exceptions.Timeout as e:
            raise NetworkError(f"Timed out calling {endpoint}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Could not reach IPFS node at {self.base_url}: {e}") from e

        logger.debug(f"Response status: {response.status_code}")
        # Truncate body for logging (first 2000 chars)
        body_preview = response.text[:2000] if response.text else "(empty)"
        logger.debug(f"Response body: {body_preview}")

        if response.status_code >= 400:
            try:
                error_data = response.json()
                msg = error_data.get("Message", response.text)
            except ValueError:
                error_data = None
                msg = response.text
            raise error_class(msg, response.status_code, error_data)

        return response

    def id(self) -> dict:
        """
        Get node identity.

        Returns dict with: ID, PublicKey, Addresses, AgentVersion, ...
        """
        response = self._request("/id", error_class=NetworkError)
        return response.json()

    def files_stat(self, path: str, timeout: float = None) -> dict:
        """
        Stat an object by path.

        Returns dict with: Hash, Size, CumulativeSize, Blocks, Type ("file"/"directory").
        """
        response = self._request(
            "/files/stat", {"arg": f"/ipfs/{path}"}, timeout, NetworkError
        )
        return response.json()

    def ls(self, path: str, timeout: float = None) -> dict:
        """
        List links of an object.

        Returns dict: {"Objects": [{"Hash": ..., "Links": [{"Name", "Hash", "Size", "Type"}]}]}
        """
        response = self._request(
            "/ls",
            {"arg": f"/ipfs/{path}", "resolve-type": "false", "stream": "false"},
            timeout,
            NetworkError,
        )
        return response.json()

    def find_providers(self, address: str, timeout: float = None) -> list:
        """
        Find peers advertising an address.

        Note: findprovs returns NDJSON (newline-delimited JSON) query events.
        """
        response = self._request(
            "/routing/findprovs", {"arg": address}, timeout, NetworkError
        )
        if not response.text:
            return []
        # Parse NDJSON - each line is a separate JSON object
        results = []
        for line in response.text.strip().split("\n"):
            if line:
                results.append(json.loads(line))
        return results

    def pin_add(self, address: str, timeout: float = None) -> dict:
        """
        Recursively pin an address on the node.

        Returns dict: {"Pins": [address, ...]}
        """
        response = self._request(
            "/pin/add", {"arg": address, "recursive": "true"}, timeout, PinError
        )
        return response.json()


class IPFSNode:
    """Asynchronous view of the node used by the pinning engine.

    Blocking HTTP calls run in worker threads so the event loop keeps
    scheduling other probes; the task pool bounds how many are in flight.
    """

    def __init__(
        self,
        client: IPFSClient,
        size_timeout: float = 60.0,
        pin_timeout: float = 600.0,
    ):
        self.client = client
        self.size_timeout = size_timeout
        self.pin_timeout = pin_timeout

    @classmethod
    def from_config(cls, config) -> "IPFSNode":
        client = IPFSClient(config.ipfs.host, config.ipfs.port, config.ipfs.protocol)
        return cls(client, size_timeout=config.size_timeout, pin_timeout=config.pin_timeout)

    async def resolve_object(self, address: str) -> ObjectInfo:
        stat = await asyncio.to_thread(self.client.files_stat, address, self.size_timeout)
        cumulative = stat.get("CumulativeSize", 0)
        if stat.get("Type") == "file":
            return ObjectInfo(is_leaf=True, cumulative_size=cumulative)

        listing = await asyncio.to_thread(self.client.ls, address, self.size_timeout)
        links = []
        for obj in listing.get("Objects") or []:
            for link in obj.get("Links") or []:
                links.append(ObjectLink.from_ipfs_link(link))
        return ObjectInfo(is_leaf=False, cumulative_size=cumulative, links=links)

    async def find_providers(self, address: str, timeout: float) -> list[ProviderRecord]:
        raw = await asyncio.to_thread(self.client.find_providers, address, timeout)
        return [ProviderRecord.from_ipfs_record(r) for r in raw]

    async def add_pin(self, address: str) -> None:
        await asyncio.to_thread(self.client.pin_add, address, self.pin_timeout)

    async def local_node_identity(self) -> str:
        info = await asyncio.to_thread(self.client.id)
        peer_id = info.get("ID")
        if not peer_id:
            raise NetworkError("IPFS node did not report its peer ID", response=info)
        return peer_id

    def validate_address(self, candidate) -> str:
        return validate_address(candidate)
