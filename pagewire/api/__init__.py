"""HTTP surface: webhook, credential and health routes plus middleware."""
