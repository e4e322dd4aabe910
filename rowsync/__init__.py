"""RowSync — rowing session sync engine.

Pulls workout sessions from a networked rowing monitor and copies them into a
permission-gated health data store, tracking which sessions have been copied.

Subpackages:
    device/      — HTTP client for the rowing monitor (list, detail, mark synced, delete)
    healthstore/ — HealthStore ABC, record models, record-set builder, in-memory store
    sync/        — SessionSyncEngine, tagged outcomes, observable state projection
"""
