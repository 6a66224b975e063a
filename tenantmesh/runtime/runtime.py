"""
Contract Runtime: Serialized, All-or-Nothing Invocations

Every public call is one invocation:

    1. take the runtime lock (one invocation at a time)
    2. open a StagedStorage over the backend
    3. capture caller, self id and timestamp into an InvocationContext
    4. load the root state ("Not initialized yet" if absent)
    5. run the contract method
    6. Ok  -> write back the root state if it changed, commit the batch
       Err -> discard the batch; the backend is untouched

A raised exception inside a method is converted to InternalError and
discarded like any other Err. Each invocation produces one log record
and updates the invocation metrics.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional, TypeVar
from uuid import uuid4

from tenantmesh.chat.models import ChatState
from tenantmesh.contract.store import TenantStore, load_state, persist_state
from tenantmesh.core.config import ContractConfig, TenantMeshConfig
from tenantmesh.core.errors import InternalError, StateError, TenantMeshError
from tenantmesh.core.types import Err, Ok, Result
from tenantmesh.host.environment import InvocationContext, MonotonicClock
from tenantmesh.observability.logging import StructuredLogger
from tenantmesh.observability.metrics import MetricsCollector
from tenantmesh.storage.protocols import KeyValueBackend
from tenantmesh.storage.staging import StagedStorage

T = TypeVar("T")

ContractMethod = Callable[[TenantStore], Result[T, TenantMeshError]]

INITIALIZE = "initialize"


class ContractRuntime:
    """
    Host for the tenant store over a KeyValueBackend.

    Example:
        runtime = ContractRuntime(InMemoryBackend())
        runtime.initialize()
        runtime.master_set("notes", "k", "v")          # caller defaults to self
        runtime.get("notes", "k", caller_id="alice")    # Ok("v")
    """

    __slots__ = (
        "_backend", "_config", "_clock", "_lock", "_logger", "_metrics",
        "_invocations", "_latency", "_messages_posted",
        "_channels_gauge", "_messages_gauge",
    )

    def __init__(
        self,
        backend: KeyValueBackend,
        config: Optional[ContractConfig] = None,
        clock: Optional[Callable[[], int]] = None,
        metrics: Optional[MetricsCollector] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._backend = backend
        self._config = config or ContractConfig()
        self._clock = MonotonicClock(clock)
        self._lock = threading.Lock()
        self._logger = logger or StructuredLogger("tenantmesh.runtime")

        collector = metrics if metrics is not None else MetricsCollector.get_instance()
        self._metrics = collector
        self._invocations = collector.counter(
            "tenantmesh_invocations_total",
            label_names=["method", "outcome"],
            help_text="Contract invocations by method and outcome",
        )
        self._latency = collector.histogram(
            "tenantmesh_invocation_seconds",
            label_names=["method"],
            help_text="Wall time per invocation, lock wait excluded",
        )
        self._messages_posted = collector.counter(
            "tenantmesh_messages_posted_total",
            help_text="Chat messages committed",
        )
        self._channels_gauge = collector.gauge(
            "tenantmesh_channels",
            help_text="Channels in the chat tenant after the last commit",
        )
        self._messages_gauge = collector.gauge(
            "tenantmesh_messages",
            help_text="Total chat messages after the last commit",
        )

    @classmethod
    def from_config(
        cls,
        backend: KeyValueBackend,
        config: TenantMeshConfig,
        clock: Optional[Callable[[], int]] = None,
    ) -> ContractRuntime:
        """
        Build a runtime from the root configuration.

        With observability.metrics_enabled off the runtime records into a
        private collector, so nothing reaches the process-wide registry.
        """
        if config.observability.metrics_enabled:
            metrics = MetricsCollector.get_instance()
        else:
            metrics = MetricsCollector()
        return cls(backend, config.contract, clock=clock, metrics=metrics)

    @property
    def self_id(self) -> str:
        return self._config.self_id

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    # -------------------------------------------------------------------------
    # Public contract surface
    # -------------------------------------------------------------------------
    def initialize(self, caller_id: Optional[str] = None) -> Result[None, TenantMeshError]:
        """Create the root record. Fails if it already exists."""
        return self.invoke(INITIALIZE, caller_id, lambda store: Ok(None))

    def master_set(
        self,
        tenant_id: str,
        key: str,
        value: str,
        caller_id: Optional[str] = None,
    ) -> Result[None, TenantMeshError]:
        return self.invoke(
            "master_set", caller_id,
            lambda store: store.master_set(tenant_id, key, value),
        )

    def master_remove(
        self,
        tenant_id: str,
        key: str,
        caller_id: Optional[str] = None,
    ) -> Result[None, TenantMeshError]:
        return self.invoke(
            "master_remove", caller_id,
            lambda store: store.master_remove(tenant_id, key),
        )

    def get(
        self,
        tenant_id: str,
        key: str,
        caller_id: Optional[str] = None,
    ) -> Result[Optional[str], TenantMeshError]:
        return self.invoke("get", caller_id, lambda store: store.get(tenant_id, key))

    def post_message(
        self,
        tenant_id: str,
        message: str,
        caller_id: Optional[str] = None,
    ) -> Result[None, TenantMeshError]:
        return self.invoke(
            "post_message", caller_id,
            lambda store: store.post_message(tenant_id, message),
        )

    # -------------------------------------------------------------------------
    # Invocation boundary
    # -------------------------------------------------------------------------
    def invoke(
        self,
        method: str,
        caller_id: Optional[str],
        fn: ContractMethod,
    ) -> Result[T, TenantMeshError]:
        """
        Run fn as one atomic invocation.

        caller_id defaults to the store's own identity.
        """
        caller = self._config.self_id if caller_id is None else caller_id

        with self._lock:
            staged = StagedStorage(self._backend)
            ctx = InvocationContext(
                storage_view=staged,
                caller_id=caller,
                self_id=self._config.self_id,
                timestamp_ns=self._clock(),
            )
            invocation_id = uuid4().hex[:16]
            start = time.perf_counter()

            with self._logger.context(invocation_id=invocation_id, method=method, caller=caller):
                try:
                    result, state = self._execute(method, ctx, fn)
                except Exception as e:
                    self._logger.exception("Contract method raised", exception=type(e).__name__)
                    result, state = Err(InternalError.unexpected(method, e)), None

                staged_writes = staged.pending_count
                if result.is_ok():
                    result = self._commit(staged, result)
                else:
                    staged.discard()

                elapsed = time.perf_counter() - start
                self._record(method, result, state, staged_writes, elapsed)

            return result

    def _execute(
        self,
        method: str,
        ctx: InvocationContext,
        fn: ContractMethod,
    ) -> tuple[Result[T, TenantMeshError], Optional[ChatState]]:
        loaded = load_state(ctx.storage)
        if loaded.is_err():
            return loaded, None
        state = loaded.unwrap()

        if method == INITIALIZE:
            if state is not None:
                return Err(StateError.already_initialized()), None
            state = ChatState()
            persist_state(ctx.storage, state)
            return Ok(None), state

        if state is None:
            return Err(StateError.not_initialized()), None

        before = state.to_root()
        store = TenantStore(ctx, state, self._config.compression_threshold_bytes)
        result = fn(store)
        if result.is_ok() and state.to_root() != before:
            persist_state(ctx.storage, state)
        return result, state

    def _commit(self, staged: StagedStorage, result: Result[T, TenantMeshError]) -> Result[T, TenantMeshError]:
        if staged.pending_count == 0:
            staged.discard()
            return result
        committed = staged.commit()
        if committed.is_err():
            return committed
        return result

    def _record(
        self,
        method: str,
        result: Result,
        state: Optional[ChatState],
        staged_writes: int,
        elapsed: float,
    ) -> None:
        outcome = "ok" if result.is_ok() else "error"
        self._invocations.inc(method=method, outcome=outcome)
        self._latency.observe(elapsed, method=method)

        latency_ms = round(elapsed * 1000, 3)
        if result.is_ok():
            if method == "post_message":
                self._messages_posted.inc()
            if state is not None:
                self._channels_gauge.set(state.num_channels)
                self._messages_gauge.set(state.total_num_messages)
            self._logger.info(
                "Invocation committed",
                staged_writes=staged_writes,
                latency_ms=latency_ms,
            )
        else:
            error = result.error
            self._logger.warning(
                "Invocation aborted",
                error_code=error.code.name,
                error_id=error.error_id,
                error_message=error.message,
                discarded_writes=staged_writes,
                latency_ms=latency_ms,
            )
