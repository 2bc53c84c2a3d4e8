# fnl_runtime.py

import asyncio
import os
import sys
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

from fnl.fnl_coerce import exit_code
from fnl.fnl_datatypes import (
    Environment, HaltSignal, ExecutionContext, RuntimeLimitError, dbg,
)
from fnl.fnl_host import FnlHost, OutputSink, RecordingCanvas, MemoryStore
from fnl.fnl_http import HttpxFetcher
from fnl.fnl_store import YamlFileStore
from fnl.fnl_interpreter import Interpreter

DEFAULT_MAX_DEPTH = 5000

# Python frames per nested block (run_statement, command handler, run_body), rounded up
FRAMES_PER_LEVEL = 4
FRAME_HEADROOM = 2000
WORKER_STACK_SIZE = 256 * 1024 * 1024


# ===================================================================
# Configuration
# ===================================================================

def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() not in ("", "0", "false", "no")


@dataclass
class RuntimeConfig:
    max_depth: int = DEFAULT_MAX_DEPTH
    store_path: Optional[str] = None
    canvas_width: float = 300
    canvas_height: float = 150
    fetch_timeout: float = 5.0
    fetch_retries: int = 0
    debug: bool = False

    @classmethod
    def from_env(cls, **overrides) -> 'RuntimeConfig':
        """Defaults, then FNL_* environment variables, then explicit overrides."""
        cfg = cls(
            max_depth=int(os.environ.get("FNL_MAX_DEPTH", DEFAULT_MAX_DEPTH)),
            store_path=os.environ.get("FNL_STORE") or None,
            fetch_timeout=float(os.environ.get("FNL_FETCH_TIMEOUT", 5.0)),
            debug=_env_flag("FNL_DEBUG"),
        )
        for key, value in overrides.items():
            if value is not None:
                setattr(cfg, key, value)
        return cfg

    def build_host(self) -> FnlHost:
        store = YamlFileStore(self.store_path) if self.store_path else MemoryStore()
        return FnlHost(
            canvas=RecordingCanvas(self.canvas_width, self.canvas_height),
            store=store,
            fetcher=HttpxFetcher(timeout=self.fetch_timeout, retries=self.fetch_retries),
        )


# ===================================================================
# Script Execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of one run."""
    status: Literal['success', 'error']
    exit_code: int = 0
    elapsed_ms: float = 0.0
    error_message: Optional[str] = None
    side_effects: List[Dict] = field(default_factory=list)
    env: Optional[Environment] = None

    @property
    def logs(self) -> List[str]:
        return [e.get('message', '') for e in self.side_effects if e.get('topics') == ['stdout']]

    @property
    def errors(self) -> List[str]:
        return [e.get('message', '') for e in self.side_effects if e.get('topics') == ['stderr']]

    def format_exit(self) -> str:
        return f"[ Exited application with code {self.exit_code} ]"


class ScriptRunner:
    """Resets the runtime state and executes FNL source, one run per call."""

    def __init__(self, host: Optional[FnlHost] = None, config: Optional[RuntimeConfig] = None):
        self.config = config or RuntimeConfig()
        self.host = host or self.config.build_host()
        self.interpreter = Interpreter()
        self.env = Environment()
        self.halt = HaltSignal()
        self.side_effects: List[Dict] = []

    def _new_context(self) -> ExecutionContext:
        return ExecutionContext(
            env=self.env,
            halt=self.halt,
            host=self.host,
            sink=OutputSink(self.side_effects),
            started_at=self.host.clock(),
            max_depth=self.config.max_depth,
            depth=0,
            debug=self.config.debug,
        )

    def _run_on_worker(self, source_code: str, ctx: ExecutionContext) -> Optional[BaseException]:
        """Run the program on its own thread and event loop; blocks until it finishes.

        Every nested block costs a few Python frames, so the worker gets a stack
        and a recursion limit sized for `max_depth` levels. Host capabilities are
        awaited on the worker's loop.
        """
        outcome: Dict[str, BaseException] = {}
        frames = ctx.max_depth * FRAMES_PER_LEVEL + FRAME_HEADROOM

        def target():
            previous = sys.getrecursionlimit()
            sys.setrecursionlimit(max(previous, frames))
            try:
                asyncio.run(self.interpreter.execute(source_code, ctx))
            except BaseException as e:
                outcome['error'] = e
            finally:
                sys.setrecursionlimit(previous)

        old_size = threading.stack_size()
        threading.stack_size(WORKER_STACK_SIZE)
        try:
            worker = threading.Thread(target=target, name="fnl-run", daemon=True)
            worker.start()
        finally:
            threading.stack_size(old_size)
        worker.join()
        return outcome.get('error')

    async def handle_script(self, source_code: str) -> ExecutionResult:
        """The run trigger: fresh environment, halt signal and depth, then execute."""
        self.env = Environment()
        self.halt = HaltSignal()
        self.side_effects = []
        self.host.canvas.clear()
        ctx = self._new_context()

        error = await asyncio.to_thread(self._run_on_worker, source_code, ctx)
        if isinstance(error, RecursionError):
            # only reachable past the logical ceiling, e.g. through nested eval
            err = RuntimeLimitError("Maximum recursion depth reached (host stack exhausted)")
            self.halt.set(1)
            ctx.sink.write_error(err.format())
            if ctx.debug:
                dbg("HALT", err.format())
        elif error is not None:
            raise error

        errors = [e for e in self.side_effects if e.get('topics') == ['stderr']]
        return ExecutionResult(
            status='error' if errors else 'success',
            exit_code=exit_code(self.halt.payload) if self.halt.halted else 0,
            elapsed_ms=self.host.clock() - ctx.started_at,
            error_message=errors[-1].get('message') if errors else None,
            side_effects=self.side_effects,
            env=self.env,
        )
