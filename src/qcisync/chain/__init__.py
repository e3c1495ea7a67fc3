"""
Chain - On-chain interaction layer for the QCI registry.

Provides the async load-balanced JSON-RPC transport, ABI loading and call
encoding, Multicall3 batching, and transaction signing.

Uses httpx + eth-account + eth-abi instead of the heavyweight web3.py.
"""
