"""
Tests Module: Unit and Integration Tests

Test Coverage:
    - Core types, errors, validation, configuration
    - Namespacing hasher (determinism, collision freedom)
    - Storage: codec, staging buffer, collections, backends
    - Chat: channel log pagination, protocol decoding
    - Contract + runtime: privileged gate, atomic discard, lifecycle
"""
