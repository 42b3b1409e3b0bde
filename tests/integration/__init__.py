"""
Integration tests for ordersaga.

These tests drive the coordinator end to end over the in-memory store and
fake services, and run the SQLite event store against a temporary database
file.
"""
