"""Article generation: queue, rate limiting, chunking and processing."""
