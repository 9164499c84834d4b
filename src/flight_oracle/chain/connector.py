"""Web3 connection helpers: provider selection, contracts, signing account."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlparse

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3, WebSocketProvider
from web3.contract import AsyncContract
from web3.providers.persistent import PersistentConnectionProvider

log = logging.getLogger(__name__)

WEBSOCKET_SCHEMES = ("ws", "wss")
HTTP_SCHEMES = ("http", "https")


@dataclass
class Sender:
    """The identity that signs oracle transactions.

    ``account`` is set when we hold the key locally; otherwise the node
    signs for ``address`` (one of its unlocked accounts).
    """

    address: str
    account: LocalAccount | None = None

    @property
    def signs_locally(self) -> bool:
        return self.account is not None


def to_websocket_url(url: str) -> str:
    """Turn an http(s) node URL into its ws(s) equivalent."""
    if url.startswith("https://"):
        return "wss://" + url[len("https://"):]
    if url.startswith("http://"):
        return "ws://" + url[len("http://"):]
    return url


def make_web3(rpc_url: str) -> AsyncWeb3:
    """Build an AsyncWeb3 client; ws(s) URLs get a persistent socket."""
    scheme = urlparse(rpc_url).scheme
    if scheme in WEBSOCKET_SCHEMES:
        return AsyncWeb3(WebSocketProvider(rpc_url))
    if scheme in HTTP_SCHEMES:
        return AsyncWeb3(AsyncHTTPProvider(rpc_url))
    raise ValueError(f"Unsupported RPC URL scheme: {rpc_url}")


def _is_persistent(w3: AsyncWeb3) -> bool:
    return isinstance(w3.provider, PersistentConnectionProvider)


async def connect(w3: AsyncWeb3) -> None:
    """Open the provider connection (no-op for HTTP) and check the node answers."""
    if _is_persistent(w3):
        await w3.provider.connect()
    if not await w3.is_connected():
        endpoint = getattr(w3.provider, "endpoint_uri", w3.provider)
        raise ConnectionError(f"Could not connect to {endpoint}")


async def reconnect(w3: AsyncWeb3) -> None:
    """Drop and re-open a persistent provider connection."""
    if not _is_persistent(w3):
        return
    try:
        await w3.provider.disconnect()
    except Exception as exc:
        log.debug("Disconnect before reconnect failed: %s", exc)
    await w3.provider.connect()
    log.info("Reconnected to node")


async def disconnect(w3: AsyncWeb3) -> None:
    if _is_persistent(w3):
        await w3.provider.disconnect()


def get_contract(w3: AsyncWeb3, address: str, abi: list[dict]) -> AsyncContract:
    return w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)


async def resolve_sender(
    w3: AsyncWeb3, private_key: str = "", account_index: int = 0,
) -> Sender:
    """Pick the signing identity.

    A configured private key wins; otherwise use the node-managed account
    at ``account_index`` (``accounts[0]`` by default).
    """
    if private_key:
        account = Account.from_key(private_key)
        log.info("Signing locally as %s", account.address)
        return Sender(address=account.address, account=account)

    accounts = await w3.eth.accounts
    if not accounts:
        raise ValueError("Node exposes no accounts and no private key is configured")
    if account_index >= len(accounts):
        raise ValueError(
            f"account_index {account_index} out of range (node has {len(accounts)} accounts)"
        )
    address = Web3.to_checksum_address(accounts[account_index])
    log.info("Signing via node account #%d %s", account_index, address)
    return Sender(address=address)
