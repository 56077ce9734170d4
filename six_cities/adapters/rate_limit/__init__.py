"""Rate limiting adapters.

Window counters either live in the shared store (global across processes) or
in-process (fallback while the store is unavailable), behind one interface.
"""
