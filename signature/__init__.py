"""
Signature module.

Incremental, chained PDF signing with the platform identity: an invisible
certification signature first, then one approval signature per signer, each
optionally carrying a visible signature block.
"""
