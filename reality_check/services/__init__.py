"""Service layer: providers, aggregation, caching, LLM access and the research pipeline."""
