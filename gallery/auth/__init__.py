"""Accounts and confirmation tokens."""
