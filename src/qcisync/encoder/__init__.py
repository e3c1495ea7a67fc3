"""
Encoder - ABI parsing, argument validation and embedded transactions.

Pure and stateless: nothing here performs I/O.
"""
