import httpx
from .config import TargetConfig


class SessionManager:
    def __init__(self, config: TargetConfig, transport: httpx.AsyncBaseTransport = None):
        self.config = config
        self.transport = transport
        self.headers = {
            "apikey": config.key,
            "Authorization": f"Bearer {config.key}",
            "User-Agent": "rlsprobe/1.0",
            "Accept": "application/json",
        }

    async def __aenter__(self) -> httpx.AsyncClient:
        kwargs = {}
        if self.transport is not None:
            kwargs["transport"] = self.transport
        elif self.config.proxy:
            kwargs["proxy"] = self.config.proxy
        self.client = httpx.AsyncClient(
            base_url=self.config.url,
            headers=self.headers,
            timeout=self.config.timeout,
            verify=False,
            **kwargs
        )
        return self.client

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.aclose()
