"""
Authentication application.

Email-based users and the marketplace Profile that identifies a user as a
customer or a provider.

Key components:
    - User model: Custom email-based user authentication
    - Profile model: Role, name and Stripe customer id

Usage:
    from authentication.models import User, Profile
"""
