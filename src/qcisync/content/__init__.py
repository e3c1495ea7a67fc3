"""
Content - Proposal bodies in content-addressed storage.

Offline CID computation, canonical content hashing, frontmatter parsing
and the pluggable store backends (Kubo, Pinata, local directory, memory).
"""
