"""
DVIT Golf storefront backend: payments, orders and confirmation emails
"""
__version__ = "1.0.0"
