"""Configuration loading, typed settings, credentials and AWS clients."""
