"""Persistence collaborator: a unit-of-work store backed by JSON files."""
