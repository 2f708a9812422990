"""
File Ingestion Collectors

Long-running pieces that react to files arriving in the ingestion tree:
- watcher.py - Watches every target's process directory
- lifecycle.py - Moves one archive through its stages
"""
