"""Artifact ingestion and listing API."""
