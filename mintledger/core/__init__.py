"""Addresses, amounts, keys, journal records and replay."""
