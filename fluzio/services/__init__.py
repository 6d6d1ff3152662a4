"""
Service layer: one module per product area, each operating on a DocumentStore.
"""
