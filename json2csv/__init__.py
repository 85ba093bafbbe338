"""
JSON to CSV processor.

Flattens directories of JSON documents into CSV tables with manifests,
either by structural inference or by an explicit column mapping.
"""

__version__ = "0.1.0"
