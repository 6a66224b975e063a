#!/usr/bin/env python3
"""
Tenant Mesh Store

Main entry point demonstrating system initialization and the
basic operations of a generic tenant and of "chat".

Usage:
    python -m tenantmesh

    # Against Redis
    STORAGE_BACKEND=redis REDIS_HOST=localhost python -m tenantmesh
"""

from __future__ import annotations

import json
import sys

from tenantmesh.core.config import TenantMeshConfig
from tenantmesh.observability.logging import LogLevel, setup_logging
from tenantmesh.runtime.runtime import ContractRuntime
from tenantmesh.storage.factory import create_backend


def demo() -> None:
    print("\n" + "=" * 60)
    print("Tenant Mesh Store - Demo")
    print("=" * 60 + "\n")

    config_result = TenantMeshConfig.from_env()
    if config_result.is_err():
        print(f"Configuration error: {config_result.error}")
        sys.exit(1)
    config = config_result.unwrap()

    validation = config.validate()
    if validation.is_err():
        print(f"Validation error: {validation.error}")
        sys.exit(1)

    print("✓ Configuration loaded and validated")
    print(f"  Self id: {config.contract.self_id}")
    print(f"  Backend: {config.storage.backend.name}")

    setup_logging(
        LogLevel.from_name(config.observability.log_level),
        json_output=config.observability.log_json,
    )

    backend = create_backend(config.storage)
    runtime = ContractRuntime.from_config(backend, config)

    init = runtime.initialize()
    if init.is_err():
        print(f"  Initialize: {init.error}")
    else:
        print("✓ Store initialized")

    print("\n--- Demo Operations ---\n")

    # 1. Generic tenant
    runtime.master_set("notes", "greeting", "hello")
    value = runtime.get("notes", "greeting", caller_id="alice")
    print(f"1. notes/greeting = {value.unwrap_or(None)!r}")

    # 2. Privileged gate
    denied = runtime.master_set("notes", "greeting", "hijacked", caller_id="mallory")
    print(f"2. Non-self master_set rejected: {denied.is_err()}")

    # 3. Chat
    for sender, text in (("bob", "hi"), ("alice", "hello bob"), ("bob", "bye")):
        message = json.dumps({"ChatMessage": {"channelId": "general", "text": text}})
        runtime.post_message("chat", message, caller_id=sender)

    status = runtime.get("chat", json.dumps({"Status": {}}), caller_id="carol")
    print(f"3. Chat status: {status.unwrap_or(None)}")

    page = runtime.get(
        "chat",
        json.dumps({"ChannelMessages": {"channelId": "general", "fromIndex": 1, "limit": 2}}),
        caller_id="carol",
    )
    print(f"4. general[1:3]: {page.unwrap_or(None)}")

    if config.observability.metrics_enabled:
        print("\n5. Metrics:")
        for line in runtime.metrics.export_prometheus().splitlines():
            if not line.startswith("#") and "_bucket" not in line:
                print(f"   {line}")

    print("\n✓ Demo complete")
    print("=" * 60 + "\n")


def main() -> None:
    """Main entry point."""
    try:
        demo()
    except KeyboardInterrupt:
        print("\nInterrupted")


if __name__ == "__main__":
    main()
