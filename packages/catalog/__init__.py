"""
Catalog package - resource types, plans and add-ons.

Plan quota defaults, plan rates and add-on rates are effective-dated; see
packages.catalog.effective_dates.
"""
