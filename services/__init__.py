"""Encryption layer (services.fhe) and the geo-proximity circuit (services.geo)."""
