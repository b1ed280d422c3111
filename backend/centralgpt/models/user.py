# centralgpt/models/user.py
"""
Database model for users.
A user is identified by an access key that doubles as its login secret.
"""
import uuid
from tortoise import fields, models

class User(models.Model):
    """
    User database model.

    Security:
    - The access key is stored as sha256 hex (plain text is only shown once, at creation)
    - prefix / last4 are kept for display in the admin panel
    - Role determines access level and expiry policy ("admin" keys never expire)
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    username = fields.CharField(max_length=256, index=True)
    access_key_hash = fields.CharField(max_length=64, unique=True, index=True)
    key_prefix = fields.CharField(max_length=8, null=True)
    key_last4 = fields.CharField(max_length=4, null=True)
    role = fields.CharField(max_length=16, default="user")  # "user" or "admin"
    created_at = fields.DatetimeField(auto_now_add=True)  # Expiry is measured from here
    profile = fields.JSONField(null=True)  # Free-form profile blob
    config = fields.JSONField(null=True)  # Per-user override of app_config fields

    class Meta:
        table = "users"
