"""
Durable collection stores.

- collections.py: JSON-file and SQLite backends for the CollectionStore port
"""
