# centralgpt/core/__init__.py
"""
Core application modules.
Contains essential infrastructure components:
- bootstrap: app_config row and default admin creation
- db: Database configuration and connection management
- errors: Error taxonomy with stable codes
- key_slot: Local durable slot for the active access key
- pubsub: Change notification feed for the users / app_config tables
- security: Access key generation, hashing and expiry arithmetic
"""
