"""
Network configuration for the smart account SDK.

Per-chain settings (RPC endpoint, EntryPoint, account factory, bundler and the
recoverable asset) are packaged in ``networks.json`` and loaded once per
process.
"""
import os
import json
import logging
import urllib.parse
import importlib.resources
from typing import Dict, Any, Optional

from .models import NetworkProfile

logger = logging.getLogger(__name__)

BUNDLER_API_KEY_ENV = "SMARTACCOUNT_BUNDLER_API_KEY"


def _env_prefix(network: str) -> str:
    return network.upper().replace("-", "_")


def redact_url(url: str) -> str:
    """
    Strip query strings from a URL so API keys never reach the logs.

    Args:
        url: URL that may carry credentials in its query

    Returns:
        URL without query string and fragment
    """
    parsed = urllib.parse.urlparse(url)
    if not parsed.query:
        return url
    return urllib.parse.urlunparse(parsed._replace(query="<redacted>", fragment=""))


def scrub_url_secrets(text: str, url: str) -> str:
    """
    Remove the credentials carried by ``url`` from arbitrary text.

    urllib3 and requests quote the request path (query included) in their
    error messages, so any query value or password of the endpoint URL is
    replaced before such text is logged or re-raised.

    Args:
        text: Message that may quote the URL
        url: Endpoint URL whose query values and password are secret

    Returns:
        Text with every secret replaced by ``<redacted>``
    """
    parsed = urllib.parse.urlparse(url)
    secrets = [value for _, value in urllib.parse.parse_qsl(parsed.query) if value]
    if parsed.password:
        secrets.append(parsed.password)
    for secret in secrets:
        for form in {secret, urllib.parse.quote(secret, safe=""), urllib.parse.quote_plus(secret)}:
            text = text.replace(form, "<redacted>")
    return text


def validate_url(url_name: str, url: str) -> None:
    """
    Ensure a URL uses https unless it points at the local machine.

    Args:
        url_name: Name used in the error message
        url: URL to check

    Raises:
        ValueError: If the URL is plain http (or another scheme) on a remote host
    """
    parsed = urllib.parse.urlparse(url)
    netloc_parts = parsed.netloc.split(':')
    host = netloc_parts[0] if netloc_parts else ''
    is_local = host in ('localhost', '127.0.0.1')
    if parsed.scheme != 'https' and not (is_local and parsed.scheme == 'http'):
        raise ValueError(f"{url_name} must use https:// for security (got: {parsed.scheme}://)")


class NetworkConfig:
    """Registry of supported networks, loaded from the packaged networks.json."""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load all network definitions.

        Returns:
            Mapping of network key to its raw configuration dictionary
        """
        if cls._networks_cache is not None:
            return cls._networks_cache

        resource = importlib.resources.files("smartaccount_sdk").joinpath("networks.json")
        with resource.open("r", encoding="utf-8") as f:
            cls._networks_cache = json.load(f)
        logger.debug(f"Loaded {len(cls._networks_cache)} network definitions")
        return cls._networks_cache

    @classmethod
    def get_network(cls, network: str) -> Dict[str, Any]:
        """
        Get the raw configuration of one network.

        Args:
            network: Network key (e.g. "polygon")

        Returns:
            Network configuration dictionary

        Raises:
            ValueError: If the network is unknown
        """
        networks = cls.load_networks()
        if network not in networks:
            available = ", ".join(sorted(networks.keys()))
            raise ValueError(f"Unknown network '{network}'. Available networks: {available}")
        return networks[network]

    @classmethod
    def get_rpc_url(cls, network: str, override: Optional[str] = None) -> str:
        """
        Resolve the chain RPC URL: explicit override, then <NETWORK>_RPC_URL, then packaged value.
        """
        if override:
            return override
        env_value = os.environ.get(f"{_env_prefix(network)}_RPC_URL")
        if env_value:
            return env_value
        return cls.get_network(network)["rpc"]

    @classmethod
    def get_bundler_url(cls, network: str, override: Optional[str] = None) -> str:
        """
        Resolve the bundler URL: explicit override, then <NETWORK>_BUNDLER_URL, then packaged value.

        When SMARTACCOUNT_BUNDLER_API_KEY is set and the URL carries no apikey
        parameter yet, the key is appended as ``apikey``.
        """
        url = override or os.environ.get(f"{_env_prefix(network)}_BUNDLER_URL") or cls.get_network(network)["bundler"]
        api_key = os.environ.get(BUNDLER_API_KEY_ENV)
        if api_key and "apikey=" not in url:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{urllib.parse.urlencode({'apikey': api_key})}"
        return url

    @classmethod
    def get_chain_id(cls, network: str) -> int:
        return int(cls.get_network(network)["chainId"])

    @classmethod
    def get_entry_point(cls, network: str) -> str:
        return cls.get_network(network)["entryPoint"]

    @classmethod
    def get_factory_address(cls, network: str) -> str:
        return cls.get_network(network)["accountFactory"]

    @classmethod
    def find_by_chain_id(cls, chain_id: int) -> str:
        """
        Find the network key for a chain id.

        Raises:
            ValueError: If no packaged network uses this chain id
        """
        for key, cfg in cls.load_networks().items():
            if int(cfg["chainId"]) == int(chain_id):
                return key
        raise ValueError(f"Unsupported chain ID: {chain_id}")

    @classmethod
    def get_profile(
        cls,
        network: str,
        rpc_url: Optional[str] = None,
        bundler_url: Optional[str] = None,
    ) -> NetworkProfile:
        """
        Build the immutable profile for a network.

        Args:
            network: Network key
            rpc_url: Optional RPC URL override
            bundler_url: Optional bundler URL override

        Returns:
            NetworkProfile for the network
        """
        cfg = cls.get_network(network)
        native = cfg["nativeCurrency"]
        asset = cfg["recoverableAsset"]
        return NetworkProfile(
            key=network,
            name=cfg["name"],
            chain_id=int(cfg["chainId"]),
            native_symbol=native["symbol"],
            native_decimals=int(native["decimals"]),
            rpc_url=cls.get_rpc_url(network, rpc_url),
            explorer_url=cfg.get("explorer"),
            entry_point=cfg["entryPoint"],
            factory_address=cfg["accountFactory"],
            bundler_url=cls.get_bundler_url(network, bundler_url),
            asset_symbol=asset["symbol"],
            asset_address=asset["address"],
            asset_decimals=int(asset["decimals"]),
        )

    @classmethod
    def explorer_tx_url(cls, network: str, tx_hash: str) -> Optional[str]:
        """Block explorer link for a transaction hash on a packaged network."""
        return cls.get_profile(network).tx_url(tx_hash)
