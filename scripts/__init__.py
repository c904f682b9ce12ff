"""
Deployment and Management Scripts
================================

Scripts for deploying and operating the Coupon Finance contracts.

Structure:
- deploy: Controller and adapter deployment with explorer verification
- coupon: Wrapped coupons, order books and market registration
- substitute: Deterministic token substitute deployment and upkeep
"""

__version__ = "1.0.0"
__author__ = "Coupon Finance Team"
