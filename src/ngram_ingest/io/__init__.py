"""Shard catalog, download and line parsing."""
