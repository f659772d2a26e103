from abc import ABC, abstractmethod
from typing import Any

from .config import TargetConfig
from .http import ResilientClient
from .logger import ScanLogger


class BaseScanner(ABC):
    def __init__(self, client: ResilientClient, config: TargetConfig, logger: ScanLogger = None):
        self.client = client
        self.config = config
        self.logger = logger or client.logger

    @abstractmethod
    async def scan(self, *args, **kwargs) -> Any:
        """
        Execute the scan logic and return the results.
        Scanners report faults through their return value or a ProbeError,
        never through a bare transport exception.
        """
        pass

    def log(self, message: str, style: str = ""):
        self.logger.log(message, style)

    def log_error(self, error: Exception, context: str = ""):
        self.logger.log_error(error, context)
