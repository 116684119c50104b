"""Domain layer: records, events, and the reconciliation core."""
