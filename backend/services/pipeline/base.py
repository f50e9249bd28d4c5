"""Abstract base class for all diagnostic pipeline stages."""

from abc import ABC, abstractmethod
from typing import Any
import logging

logger = logging.getLogger(__name__)


class BaseEngineService(ABC):
    """Base class for pipeline engine services.

    Subclasses must implement:
        - engine_name: identifier used in engine_registry
        - load(): read configuration the stage needs
        - predict(**kwargs): run the stage and return a typed schema

    Stages hold configuration only; every call is a pure function of its
    arguments, so one instance can serve many subjects concurrently.
    """

    engine_name: str = ""
    _loaded: bool = False

    @abstractmethod
    def load(self) -> None:
        """Read settings. Called once by engine_registry."""

    @abstractmethod
    def predict(self, **kwargs: Any) -> Any:
        """Run the stage. Returns a Pydantic schema defined per stage."""

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def ensure_loaded(self) -> None:
        """Load configuration if not already loaded."""
        if not self._loaded:
            logger.info("Loading engine: %s", self.engine_name)
            self.load()
            self._loaded = True
            logger.info("Engine loaded: %s", self.engine_name)
