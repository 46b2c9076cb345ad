"""
Test suite for the tree synchronization engine.

These tests drive TreeSyncEngine end to end against a temporary sync
directory: incremental mutations, subtree deletion, full snapshots with
orphan cleanup, and cold-start seeding from disk.
"""
