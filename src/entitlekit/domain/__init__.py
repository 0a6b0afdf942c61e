"""Entitlement domain: model, ports and the reconciliation core."""
