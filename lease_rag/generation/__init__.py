"""Context assembly and source attribution for downstream prompts."""
