"""Process-wide plumbing: structured JSON logging."""
