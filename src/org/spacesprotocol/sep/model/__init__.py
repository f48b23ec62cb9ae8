"""
Service Models

Key Models:
- health.py: Health monitoring model backing the readiness probe
"""
