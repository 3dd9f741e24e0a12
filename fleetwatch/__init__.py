"""fleetwatch — discovery, health, alerting and cost tracking for a Cloudflare account."""

__version__ = "0.1.0"
