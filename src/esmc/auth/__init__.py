"""Authentication: hardware binding, credentials, JWT validation and tiers."""
