"""
File Ingestion Domain

Loads archives dropped into a watched directory tree into Neo4j:
- Uploaded archives move upload -> process -> done/failed by atomic rename
- Archives are extracted next to themselves and removed afterwards
- Extracted entries are applied to the target in one transaction
"""

__all__ = ["collectors", "processors"]
