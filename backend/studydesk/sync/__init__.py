"""Client-side consistency with a concurrently changing store.

Sub-modules:
- realtime: in-process change feed keyed by ``(table, user_id)``
- reconciler: keeps local collection copies in step with the store
"""
