"""
CampusLink backend: multi-college identity, tenant-scoped authorization and
the student fee ledger, served with FastAPI.
"""
