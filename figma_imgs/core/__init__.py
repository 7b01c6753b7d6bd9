"""
Core application engine for reconciling a local directory with a Figma node.

The `ImageSyncManager` acts as the session coordinator: it asks the freshness
resolver which assets need fetching and runs those fetches through the
bounded worker pool.
"""
