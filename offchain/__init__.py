"""
Coupon Finance Offchain Toolkit
===============================

Shared building blocks for the deployment and operation scripts:

- constants: per-network address registry
- derivation: CREATE2 addresses, coupon ids and wrapper metadata
- chain: Web3 connection and transaction sending
- deployments: deployment record store
- verifier: block explorer source verification
"""

__version__ = "1.0.0"
__author__ = "Coupon Finance Team"
