from abc import ABC, abstractmethod


class BaseService(ABC):
    """
    Base class for the long-running parts of the HazardEye portal core
    (backend sync, push event intake).
    """
    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    async def start(self):
        """Begin background work. Must return once the service is ready."""

    @abstractmethod
    async def stop(self):
        """Release connections and cancel background tasks."""
