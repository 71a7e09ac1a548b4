"""Cron-driven automation: trigger windows, n8n webhooks and run status."""
