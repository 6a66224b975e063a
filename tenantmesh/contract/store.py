"""
Generic Store: the Contract Surface

Four operations over one flat, hash-namespaced key space:

    master_set(tenant, key, value)   privileged; writes b"a" ++ H(tenant) ++ H(key)
    master_remove(tenant, key)       privileged; absent keys are fine
    get(tenant, key)                 "chat" routes to the chat protocol
    post_message(tenant, message)    "chat" only; appends to a channel

Every method returns a Result. An Err aborts the invocation: the runtime
discards the staging buffer and nothing reaches the backend.

The privileged gate compares the caller against the store's own identity
on every call. Tenant ids are validated on the read and post paths only;
the privileged writer is trusted with its own key space.
"""

from __future__ import annotations

import logging
from typing import Optional

from tenantmesh.chat.channel_log import ChannelLog
from tenantmesh.chat.models import ChatState
from tenantmesh.chat.protocol import (
    ChannelMessagesRequest,
    ChannelMessagesResponse,
    ChannelStatusRequest,
    ChannelStatusResponse,
    ChatMessage,
    GetRequest,
    Response,
    StatusRequest,
    StatusResponse,
    decode_get_request,
    decode_incoming_message,
    encode_response,
)
from tenantmesh.core import constants as C
from tenantmesh.core.errors import (
    AuthorizationError,
    ProtocolError,
    StorageError,
    TenantMeshError,
    ValidationError,
)
from tenantmesh.core.types import Err, Ok, Result
from tenantmesh.core.validation import validate_tenant_id, validate_utf8
from tenantmesh.host.environment import HostEnvironment
from tenantmesh.namespace.hasher import NamespaceHasher
from tenantmesh.storage.codec import decode_root, encode_root
from tenantmesh.storage.protocols import StorageView

logger = logging.getLogger(__name__)


# =============================================================================
# ROOT STATE
# =============================================================================
def load_state(storage: StorageView) -> Result[Optional[ChatState], StorageError]:
    """Read the root record. Ok(None) means the store was never initialized."""
    raw = storage.read(C.STATE_KEY)
    if raw.is_err():
        return raw
    data = raw.unwrap()
    if data is None:
        return Ok(None)
    return decode_root(data).map(ChatState.from_root)


def persist_state(storage: StorageView, state: ChatState) -> None:
    storage.write(C.STATE_KEY, encode_root(state.to_root()))


# =============================================================================
# TENANT STORE
# =============================================================================
class TenantStore:
    """
    Contract methods bound to one invocation's environment and state.

    Example:
        store = TenantStore(env, state)
        store.master_set("notes", "greeting", "hello")
        store.get("notes", "greeting").unwrap()   # "hello"
    """

    __slots__ = ("_env", "_state", "_hasher", "_compression_threshold")

    def __init__(
        self,
        env: HostEnvironment,
        state: ChatState,
        compression_threshold: int = C.COMPRESSION_THRESHOLD_BYTES,
    ) -> None:
        self._env = env
        self._state = state
        self._hasher = NamespaceHasher(env.sha256)
        self._compression_threshold = compression_threshold

    @property
    def state(self) -> ChatState:
        return self._state

    def _require_self(self, operation: str) -> Result[None, AuthorizationError]:
        caller = self._env.caller_identity()
        self_id = self._env.self_identity()
        if caller != self_id:
            return Err(AuthorizationError.self_call_required(operation, caller, self_id))
        return Ok(None)

    def _channel_log(self) -> ChannelLog:
        return ChannelLog(self._env, self._state, self._compression_threshold)

    # -------------------------------------------------------------------------
    # Privileged writes
    # -------------------------------------------------------------------------
    def master_set(self, tenant_id: str, key: str, value: str) -> Result[None, TenantMeshError]:
        gate = self._require_self("master_set")
        if gate.is_err():
            return gate
        for field, text in (("tenant_id", tenant_id), ("key", key), ("value", value)):
            encodable = validate_utf8(field, text)
            if encodable.is_err():
                return encodable
        address = self._hasher.tenant_value_address(tenant_id, key)
        self._env.storage.write(bytes(address), value.encode("utf-8"))
        return Ok(None)

    def master_remove(self, tenant_id: str, key: str) -> Result[None, TenantMeshError]:
        gate = self._require_self("master_remove")
        if gate.is_err():
            return gate
        for field, text in (("tenant_id", tenant_id), ("key", key)):
            encodable = validate_utf8(field, text)
            if encodable.is_err():
                return encodable
        address = self._hasher.tenant_value_address(tenant_id, key)
        self._env.storage.remove(bytes(address))
        return Ok(None)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------
    def get(self, tenant_id: str, key: str) -> Result[Optional[str], TenantMeshError]:
        valid = validate_tenant_id(tenant_id)
        if valid.is_err():
            return valid

        if tenant_id == C.CHAT_TENANT_ID:
            return self._chat_get(key)

        encodable = validate_utf8("key", key)
        if encodable.is_err():
            return encodable
        address = self._hasher.tenant_value_address(tenant_id, key)
        raw = self._env.storage.read(bytes(address))
        if raw.is_err():
            return raw
        data = raw.unwrap()
        if data is None:
            return Ok(None)
        try:
            return Ok(data.decode("utf-8"))
        except UnicodeDecodeError as e:
            return Err(ValidationError.invalid_encoding("value", e).with_context(
                tenant_id=tenant_id, address=address.hex(),
            ))

    def _chat_get(self, key: str) -> Result[Optional[str], TenantMeshError]:
        request = decode_get_request(key)
        if request.is_err():
            return request
        response = self._answer(request.unwrap())
        if response.is_err():
            return response
        return Ok(encode_response(response.unwrap()))

    def _answer(self, request: GetRequest) -> Result[Response, TenantMeshError]:
        match request:
            case StatusRequest():
                return Ok(StatusResponse(
                    num_channels=self._state.num_channels,
                    total_num_messages=self._state.total_num_messages,
                ))
            case ChannelStatusRequest(channel_id=channel_id):
                channel = self._channel_log().get_channel(channel_id)
                if channel.is_err():
                    return channel
                return Ok(ChannelStatusResponse(num_messages=channel.unwrap().num_messages))
            case ChannelMessagesRequest(channel_id=channel_id, from_index=start, limit=limit):
                log = self._channel_log()
                channel = log.get_channel(channel_id)
                if channel.is_err():
                    return channel
                messages = log.messages_slice(channel.unwrap(), start, limit)
                if messages.is_err():
                    return messages
                return Ok(ChannelMessagesResponse(messages=messages.unwrap()))
        raise TypeError(f"unhandled request {request!r}")

    # -------------------------------------------------------------------------
    # Posting
    # -------------------------------------------------------------------------
    def post_message(self, tenant_id: str, message: str) -> Result[None, TenantMeshError]:
        valid = validate_tenant_id(tenant_id)
        if valid.is_err():
            return valid
        if tenant_id != C.CHAT_TENANT_ID:
            return Err(ProtocolError.unsupported_tenant(tenant_id))

        decoded = decode_incoming_message(message)
        if decoded.is_err():
            return decoded
        return self._post_chat_message(decoded.unwrap())

    def _post_chat_message(self, incoming: ChatMessage) -> Result[None, TenantMeshError]:
        log = self._channel_log()
        loaded = log.get_channel(incoming.channel_id)
        if loaded.is_err():
            return loaded
        channel = loaded.unwrap()

        log.append_message(channel, self._env.caller_identity(), incoming.text)
        saved = log.save_channel(channel)
        if saved.is_err():
            return saved

        self._state.total_num_messages += 1
        logger.debug(
            "Posted chat message",
            extra={"channel_id": channel.channel_id, "num_messages": channel.num_messages},
        )
        return Ok(None)
