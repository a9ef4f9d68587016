"""Relay services: merging/publishing and the poll loop."""
