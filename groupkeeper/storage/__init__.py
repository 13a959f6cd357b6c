"""
Storage backends. Both implement the contracts in `groupkeeper.storage.base`.
"""
