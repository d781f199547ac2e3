"""Signal extraction and aggregation over LLM responses: URLs, competitors, cited sources."""
