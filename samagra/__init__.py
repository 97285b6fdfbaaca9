"""Samagra appointment scheduling backend."""
