"""Vision clients, error classification, retry, rate limiting and batching."""
