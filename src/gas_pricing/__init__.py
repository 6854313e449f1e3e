"""
Gas Pricing Package

Pricing core for a gas cylinder distribution business.
Resolves Price List → Item → Charge, adds cylinder deposits and
empty-return credits, and assembles order totals per sale scenario.
"""

__version__ = "2.0.0"
