"""Deterministic JDK provisioning with CA certificate bootstrapping."""

__version__ = "0.4.0"
