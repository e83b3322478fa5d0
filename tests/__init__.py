"""Test package for Gravity Well.

This package contains tests for all import pipeline components:
- Settings and extension validation
- Directory scanning, metadata collection and content extraction
- Tag extraction and link annotation
- Note writing and the document store
- Import orchestration and the run log
- Command line interface
"""
