"""
External data source clients: NFT ownership providers, the Etherscan ledger
indexer and the delegation registry.
"""
