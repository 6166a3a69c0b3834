"""Shared plumbing for the radiod daemon and CLI."""
