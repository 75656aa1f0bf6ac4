"""
Subscriptions package - subscription resolution, the quota and usage
ledgers, attached add-ons, update events and overage detection.
"""
