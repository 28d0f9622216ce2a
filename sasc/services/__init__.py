"""Runtime services: store, sagas, transport, registry and helpers."""
