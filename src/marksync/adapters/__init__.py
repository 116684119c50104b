"""Adapters binding the reconciliation core to concrete transports and stores."""
