"""
Integration Tests: Contract Runtime over the In-Memory Backend

Tests:
    - Lifecycle: initialize once, nothing works before it
    - Generic store set/get/remove and tenant isolation
    - Privileged gate leaves the store untouched on rejection
    - Chat end-to-end, pagination and aggregate counters
    - All-or-nothing commit on Err and on raised exceptions
    - Invocation metrics and the metrics_enabled switch
"""

import json
import random

import pytest

from tenantmesh.core.config import ContractConfig, ObservabilityConfig, TenantMeshConfig
from tenantmesh.core.errors import ErrorCode
from tenantmesh.core.types import Err, Ok
from tenantmesh.namespace.hasher import NamespaceHasher
from tenantmesh.observability.metrics import MetricsCollector
from tenantmesh.runtime.runtime import ContractRuntime
from tenantmesh.storage.backends import InMemoryBackend

SELF_ID = "tenantmesh"
T0_NS = 1_700_000_000_123_456_789
T0_MS = T0_NS // 1_000_000


def _chat_message(channel_id, text):
    return json.dumps({"ChatMessage": {"channelId": channel_id, "text": text}})


def _status_request():
    return json.dumps({"Status": {}})


def _channel_status_request(channel_id):
    return json.dumps({"ChannelStatus": {"channelId": channel_id}})


def _messages_request(channel_id, from_index, limit):
    return json.dumps({"ChannelMessages": {
        "channelId": channel_id, "fromIndex": from_index, "limit": limit,
    }})


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def runtime(backend, metrics):
    """Initialized runtime with a fixed clock."""
    rt = ContractRuntime(
        backend,
        ContractConfig(self_id=SELF_ID),
        clock=lambda: T0_NS,
        metrics=metrics,
    )
    assert rt.initialize().is_ok()
    return rt


class TestLifecycle:
    """Tests for initialize and the not-initialized guard."""

    def test_not_initialized(self, backend):
        rt = ContractRuntime(backend, metrics=MetricsCollector())
        result = rt.get("notes", "k")
        assert result.error.code == ErrorCode.STATE_NOT_INITIALIZED
        assert backend.count() == 0

    def test_not_initialized_blocks_posts(self, backend):
        rt = ContractRuntime(backend, metrics=MetricsCollector())
        result = rt.post_message("chat", _chat_message("general", "hi"), caller_id="bob")
        assert result.error.code == ErrorCode.STATE_NOT_INITIALIZED

    def test_initialize_twice(self, runtime, backend):
        before = backend.snapshot()
        result = runtime.initialize()
        assert result.error.code == ErrorCode.STATE_ALREADY_INITIALIZED
        assert backend.snapshot() == before

    def test_initial_status(self, runtime):
        status = runtime.get("chat", _status_request(), caller_id="carol")
        assert status.unwrap() == '{"numChannels":0,"totalNumMessages":0}'


class TestGenericStore:
    """Tests for master_set / master_remove / get."""

    def test_set_get_remove(self, runtime):
        assert runtime.master_set("notes", "greeting", "hello").is_ok()
        assert runtime.get("notes", "greeting", caller_id="alice").unwrap() == "hello"

        assert runtime.master_remove("notes", "greeting").is_ok()
        assert runtime.get("notes", "greeting").unwrap() is None

    def test_missing_key_is_none(self, runtime):
        assert runtime.get("notes", "never-set").unwrap() is None

    def test_remove_missing_is_ok(self, runtime):
        assert runtime.master_remove("notes", "never-set").is_ok()

    def test_overwrite(self, runtime):
        runtime.master_set("notes", "k", "v1")
        runtime.master_set("notes", "k", "v2")
        assert runtime.get("notes", "k").unwrap() == "v2"

    def test_tenants_isolated(self, runtime):
        runtime.master_set("t1", "k", "one")
        runtime.master_set("t2", "k", "two")
        assert runtime.get("t1", "k").unwrap() == "one"
        assert runtime.get("t2", "k").unwrap() == "two"

    def test_value_stored_at_hashed_address(self, runtime, backend):
        runtime.master_set("notes", "k", "héllo")
        address = NamespaceHasher().tenant_value_address("notes", "k")
        assert backend.read(bytes(address)).unwrap() == "héllo".encode("utf-8")

    def test_arbitrary_key_strings(self, runtime):
        runtime.master_set("notes", "Any Key / With: punctuation", "v")
        assert runtime.get("notes", "Any Key / With: punctuation").unwrap() == "v"

    def test_get_validates_tenant(self, runtime):
        assert runtime.get("x", "k").error.code == ErrorCode.VALIDATION_INVALID_LENGTH
        assert runtime.get("Notes", "k").error.code == ErrorCode.VALIDATION_INVALID_CHARACTER

    def test_privileged_writes_skip_tenant_policy(self, runtime, backend):
        assert runtime.master_set("UPPER", "k", "v").is_ok()
        address = NamespaceHasher().tenant_value_address("UPPER", "k")
        assert backend.read(bytes(address)).unwrap() == b"v"
        assert runtime.get("UPPER", "k").is_err()

    def test_invalid_utf8_value_aborts(self, runtime, backend):
        address = NamespaceHasher().tenant_value_address("notes", "bad")
        backend.write(bytes(address), b"\xff\xfe")
        result = runtime.get("notes", "bad")
        assert result.error.code == ErrorCode.VALIDATION_INVALID_ENCODING

    def test_get_does_not_commit(self, runtime, backend):
        runtime.master_set("notes", "k", "v")
        batches = backend.batches_applied
        runtime.get("notes", "k")
        runtime.get("chat", _status_request())
        assert backend.batches_applied == batches


class TestPrivilegedGate:
    """Tests for the self-call requirement."""

    def test_non_self_set_rejected(self, runtime, backend):
        runtime.master_set("notes", "k", "original")
        before = backend.snapshot()

        result = runtime.master_set("notes", "k", "hijacked", caller_id="mallory")

        assert result.error.code == ErrorCode.SECURITY_SELF_CALL_REQUIRED
        assert result.error.context["caller_id"] == "mallory"
        assert backend.snapshot() == before

    def test_non_self_remove_rejected(self, runtime, backend):
        runtime.master_set("notes", "k", "v")
        before = backend.snapshot()

        result = runtime.master_remove("notes", "k", caller_id="mallory")

        assert result.error.code == ErrorCode.SECURITY_SELF_CALL_REQUIRED
        assert backend.snapshot() == before
        assert runtime.get("notes", "k").unwrap() == "v"

    def test_explicit_self_caller(self, runtime):
        assert runtime.master_set("notes", "k", "v", caller_id=SELF_ID).is_ok()


class TestChat:
    """End-to-end chat scenarios."""

    def test_bob_posts_hi(self, runtime):
        posted = runtime.post_message("chat", _chat_message("general", "hi"), caller_id="bob")
        assert posted.is_ok()

        status = runtime.get("chat", _status_request(), caller_id="carol")
        assert status.unwrap() == '{"numChannels":1,"totalNumMessages":1}'

        channel = runtime.get("chat", _channel_status_request("general"))
        assert channel.unwrap() == '{"numMessages":1}'

        page = runtime.get("chat", _messages_request("general", 0, 10))
        assert page.unwrap() == (
            '{"messages":[{"time":%d,"senderId":"bob","text":"hi"}]}' % T0_MS
        )

    def test_unknown_channel_status_is_zero(self, runtime):
        result = runtime.get("chat", _channel_status_request("nowhere"))
        assert result.unwrap() == '{"numMessages":0}'
        status = runtime.get("chat", _status_request())
        assert json.loads(status.unwrap())["numChannels"] == 0

    def test_pagination(self, runtime):
        for i in range(5):
            runtime.post_message("chat", _chat_message("general", f"m{i}"), caller_id="bob")

        def texts(from_index, limit):
            page = runtime.get("chat", _messages_request("general", from_index, limit))
            return [m["text"] for m in json.loads(page.unwrap())["messages"]]

        assert texts(0, 2) == ["m0", "m1"]
        assert texts(3, 10) == ["m3", "m4"]
        assert texts(5, 1) == []
        assert texts(2**64 - 1, 2**64 - 1) == []

    def test_sender_is_caller(self, runtime):
        runtime.post_message("chat", _chat_message("general", "hi"), caller_id="alice")
        page = json.loads(runtime.get("chat", _messages_request("general", 0, 1)).unwrap())
        assert page["messages"][0]["senderId"] == "alice"

    def test_totals_match_channel_sums(self, runtime):
        rng = random.Random(11)
        channels = ["general", "random", "dev", "ops"]
        for i in range(40):
            runtime.post_message(
                "chat",
                _chat_message(rng.choice(channels), f"msg {i}"),
                caller_id=rng.choice(["bob", "alice"]),
            )

        status = json.loads(runtime.get("chat", _status_request()).unwrap())
        per_channel = [
            json.loads(runtime.get("chat", _channel_status_request(c)).unwrap())["numMessages"]
            for c in channels
        ]
        assert status["totalNumMessages"] == sum(per_channel) == 40
        assert status["numChannels"] == sum(1 for n in per_channel if n > 0)

    def test_post_to_other_tenant_rejected(self, runtime, backend):
        before = backend.snapshot()
        result = runtime.post_message("notes", _chat_message("general", "hi"), caller_id="bob")
        assert result.error.code == ErrorCode.PROTOCOL_UNSUPPORTED_TENANT
        assert backend.snapshot() == before

    def test_post_validates_tenant_first(self, runtime):
        result = runtime.post_message("c", _chat_message("general", "hi"), caller_id="bob")
        assert result.error.code == ErrorCode.VALIDATION_INVALID_LENGTH

    def test_malformed_message_rejected(self, runtime, backend):
        before = backend.snapshot()
        result = runtime.post_message("chat", '{"ChatMessage":{"channelId":"general"}}')
        assert result.error.code == ErrorCode.PROTOCOL_MALFORMED_PAYLOAD
        assert backend.snapshot() == before

    def test_invalid_channel_rejected(self, runtime, backend):
        before = backend.snapshot()
        result = runtime.post_message("chat", _chat_message("General!", "hi"), caller_id="bob")
        assert result.error.code == ErrorCode.VALIDATION_INVALID_CHARACTER
        assert backend.snapshot() == before

    def test_malformed_request_rejected(self, runtime):
        result = runtime.get("chat", '{"ChannelMessages":{"channelId":"general","fromIndex":-1,"limit":1}}')
        assert result.error.code == ErrorCode.PROTOCOL_MALFORMED_PAYLOAD

    def test_post_commits_as_one_batch(self, runtime, backend):
        batches = backend.batches_applied
        runtime.post_message("chat", _chat_message("general", "hi"), caller_id="bob")
        assert backend.batches_applied == batches + 1


class TestAtomicity:
    """Tests for discard-on-abort."""

    def test_err_discards_earlier_writes(self, runtime, backend):
        before = backend.snapshot()

        def method(store):
            assert store.master_set("notes", "k", "v").is_ok()
            assert store.post_message("chat", _chat_message("general", "hi")).is_ok()
            return store.master_set("notes", "k", "v2").flat_map(
                lambda _: store.get("x", "k")
            )

        result = runtime.invoke("custom", None, method)

        assert result.is_err()
        assert backend.snapshot() == before

    def test_exception_becomes_internal_error(self, runtime, backend):
        before = backend.snapshot()

        def method(store):
            store.master_set("notes", "k", "v")
            raise ValueError("boom")

        result = runtime.invoke("custom", None, method)

        assert result.error.code == ErrorCode.INTERNAL_ERROR
        assert isinstance(result.error.cause, ValueError)
        assert backend.snapshot() == before

    def test_state_counters_not_leaked_on_abort(self, runtime):
        def method(store):
            store.post_message("chat", _chat_message("general", "hi"))
            return Err(store.get("x", "k").error)

        runtime.invoke("custom", "bob", method)

        status = runtime.get("chat", _status_request())
        assert status.unwrap() == '{"numChannels":0,"totalNumMessages":0}'

    def test_ok_commits_custom_method(self, runtime):
        runtime.invoke("custom", None, lambda store: store.master_set("notes", "k", "v"))
        assert runtime.get("notes", "k").unwrap() == "v"

    def test_runtime_usable_after_exception(self, runtime):
        def method(store):
            raise RuntimeError("boom")

        runtime.invoke("custom", None, method)
        assert runtime.invoke("custom", None, lambda store: Ok("fine")).unwrap() == "fine"


class TestUnencodableText:
    """Lone surrogates are rejected as caller errors and write nothing."""

    def test_chat_get_channel_id(self, runtime, backend):
        before = backend.snapshot()
        result = runtime.get("chat", '{"ChannelStatus":{"channelId":"\\ud800"}}')
        assert result.error.code == ErrorCode.PROTOCOL_MALFORMED_PAYLOAD
        assert backend.snapshot() == before

    def test_chat_post_text(self, runtime, backend):
        before = backend.snapshot()
        result = runtime.post_message(
            "chat", '{"ChatMessage":{"channelId":"g","text":"\\ud800"}}', caller_id="bob",
        )
        assert result.error.code == ErrorCode.PROTOCOL_MALFORMED_PAYLOAD
        assert backend.snapshot() == before

    def test_tenant_ids(self, runtime):
        assert runtime.get("ab\ud800", "k").error.code == ErrorCode.VALIDATION_INVALID_CHARACTER
        result = runtime.post_message("chat\ud800", _chat_message("g", "hi"), caller_id="bob")
        assert result.error.code == ErrorCode.VALIDATION_INVALID_CHARACTER

    def test_master_set(self, runtime, backend):
        before = backend.snapshot()
        for args in (("notes", "k", "\udc00"), ("notes", "\udc00", "v"), ("\udc00", "k", "v")):
            result = runtime.master_set(*args)
            assert result.error.code == ErrorCode.VALIDATION_INVALID_ENCODING, args
        assert backend.snapshot() == before

    def test_master_remove_and_get_key(self, runtime):
        assert runtime.master_remove("notes", "\udc00").error.code == ErrorCode.VALIDATION_INVALID_ENCODING
        assert runtime.get("notes", "\udc00").error.code == ErrorCode.VALIDATION_INVALID_ENCODING


class TestInvocationMetrics:
    """Tests for per-invocation metrics."""

    def test_counters(self, runtime, metrics):
        runtime.post_message("chat", _chat_message("general", "hi"), caller_id="bob")
        runtime.master_set("notes", "k", "v", caller_id="mallory")

        invocations = metrics.counter("tenantmesh_invocations_total")
        assert invocations.get(method="post_message", outcome="ok") == 1
        assert invocations.get(method="master_set", outcome="error") == 1
        assert invocations.get(method="initialize", outcome="ok") == 1
        assert metrics.counter("tenantmesh_messages_posted_total").get() == 1

    def test_gauges_track_committed_state(self, runtime, metrics):
        runtime.post_message("chat", _chat_message("a1", "x"), caller_id="bob")
        runtime.post_message("chat", _chat_message("b1", "y"), caller_id="bob")
        assert metrics.gauge("tenantmesh_channels").get() == 2
        assert metrics.gauge("tenantmesh_messages").get() == 2

    def test_latency_histogram(self, runtime, metrics):
        runtime.get("notes", "k")
        histogram = metrics.histogram("tenantmesh_invocation_seconds")
        assert histogram.count(method="get") == 1


class TestFromConfig:
    """Tests for ContractRuntime.from_config."""

    def _config(self, metrics_enabled):
        return TenantMeshConfig(
            contract=ContractConfig(self_id=SELF_ID),
            observability=ObservabilityConfig(metrics_enabled=metrics_enabled),
        )

    def test_enabled_uses_global_collector(self, backend):
        rt = ContractRuntime.from_config(backend, self._config(True), clock=lambda: T0_NS)
        assert rt.metrics is MetricsCollector.get_instance()
        assert rt.self_id == SELF_ID

    def test_disabled_keeps_global_collector_untouched(self, backend):
        invocations = MetricsCollector.get_instance().counter(
            "tenantmesh_invocations_total", ["method", "outcome"],
        )
        before = invocations.get(method="initialize", outcome="ok")

        rt = ContractRuntime.from_config(backend, self._config(False), clock=lambda: T0_NS)
        assert rt.initialize().is_ok()

        assert rt.metrics is not MetricsCollector.get_instance()
        assert invocations.get(method="initialize", outcome="ok") == before
        local = rt.metrics.counter("tenantmesh_invocations_total")
        assert local.get(method="initialize", outcome="ok") == 1
