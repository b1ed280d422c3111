"""CentralGPT backend: completion gateway with credential failover, access-key sessions and config sync."""
