"""
Capability interfaces the FNL runtime calls out to.

The interpreter never owns a screen, a database or a network stack. It is
handed an `FnlHost` bundling the collaborators below; anything a host does
not supply falls back to the in-process defaults defined here.
"""
import copy
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


# ===================================================================
# Output
# ===================================================================

class OutputSink:
    """Append-only log/error stream, kept as side-effect records tagged by topic."""

    def __init__(self, side_effects: Optional[List[Dict]] = None):
        self.side_effects: List[Dict] = side_effects if side_effects is not None else []

    def write_log(self, text: str):
        self.side_effects.append({'topics': ['stdout'], 'message': text})

    def write_error(self, text: str):
        self.side_effects.append({'topics': ['stderr'], 'message': text})


# ===================================================================
# Drawing surface
# ===================================================================

class Canvas(ABC):
    @abstractmethod
    def set_fill_color(self, color: str): raise NotImplementedError
    @abstractmethod
    def fill_rect(self, x: Any, y: Any, w: Any, h: Any): raise NotImplementedError
    @property
    @abstractmethod
    def width(self) -> float: raise NotImplementedError
    @property
    @abstractmethod
    def height(self) -> float: raise NotImplementedError

    def clear(self):
        pass


class RecordingCanvas(Canvas):
    """Keeps every drawing call; the default surface for headless runs."""

    def __init__(self, width: float = 300, height: float = 150):
        self._width = width
        self._height = height
        self.fill_color = "#000000"
        self.operations: List[tuple] = []

    def set_fill_color(self, color: str):
        self.fill_color = color

    def fill_rect(self, x, y, w, h):
        self.operations.append(("fill_rect", self.fill_color, x, y, w, h))

    @property
    def width(self) -> float:
        return self._width

    @property
    def height(self) -> float:
        return self._height

    def clear(self):
        self.operations.clear()


# ===================================================================
# Durable key-value store
# ===================================================================

class Store(ABC):
    """Keyed by arbitrary strings; every call may raise."""

    @abstractmethod
    async def get(self, key: str) -> Any: raise NotImplementedError
    @abstractmethod
    async def put(self, key: str, value: Any): raise NotImplementedError


class MemoryStore(Store):
    """Lives as long as the object does; share one instance to persist across runs."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = dict(data or {})

    async def get(self, key: str) -> Any:
        return copy.deepcopy(self.data.get(key))

    async def put(self, key: str, value: Any):
        self.data[key] = copy.deepcopy(value)


# ===================================================================
# Network fetch
# ===================================================================

@dataclass
class FetchResponse:
    status: int
    ok: bool
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""

    def to_record(self) -> Dict[str, Any]:
        return {
            'status': float(self.status),
            'ok': self.ok,
            'headers': dict(self.headers),
            'body': self.body,
        }


class Fetcher(ABC):
    @abstractmethod
    async def request(self, url: str) -> FetchResponse: raise NotImplementedError


class OfflineFetcher(Fetcher):
    """Refuses every request; used when a host turns networking off."""

    async def request(self, url: str) -> FetchResponse:
        raise ConnectionError(f"network access disabled: {url}")


# ===================================================================
# Host bundle
# ===================================================================

def perf_clock() -> float:
    """Monotonic milliseconds."""
    return time.perf_counter() * 1000.0


class FnlHost:
    """The set of collaborators one runner talks to."""

    def __init__(self,
                 canvas: Optional[Canvas] = None,
                 store: Optional[Store] = None,
                 fetcher: Optional[Fetcher] = None,
                 clock: Optional[Callable[[], float]] = None,
                 rng: Optional[Callable[[], float]] = None):
        self.canvas = canvas if canvas is not None else RecordingCanvas()
        self.store = store if store is not None else MemoryStore()
        if fetcher is None:
            # lazy import to avoid cycles
            from fnl.fnl_http import HttpxFetcher
            fetcher = HttpxFetcher()
        self.fetcher = fetcher
        self.clock = clock or perf_clock
        self.rng = rng or random.random

    def __repr__(self):
        return (f"<FnlHost canvas={type(self.canvas).__name__} store={type(self.store).__name__} "
                f"fetcher={type(self.fetcher).__name__}>")
