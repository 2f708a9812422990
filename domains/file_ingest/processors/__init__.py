"""
File Ingestion Processors

Shared processing utilities for file ingestion:
- archive.py - Archive extraction and cleanup
- templates.py - Update templates and identifier binding
- loader.py - Transactional batch loading
- graph_writer.py - Neo4j node/relationship creation
"""
