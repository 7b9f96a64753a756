"""
Commercial Pricing Package

Resolves whether a SKU is sellable on a channel and at what price:
Allocation → Price Book → Offer → Benefit, with Pricing Policies generating
base prices into Price Books.
"""

__version__ = "1.0.0"
