"""
Core verification pipeline: ownership resolution, delegation proof, on-chain
verification, aggregation and caching.
"""
