"""
Registry - Proposal records, status vocabulary and lifecycle.

The registry contract is authoritative for every proposal's status and
content pointer; this package reads it, merges content, and gates status
changes.
"""
