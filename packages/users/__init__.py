"""
Users package - accounts that own subscriptions.

Usernames are stored without any ``@domain`` suffix.
"""
