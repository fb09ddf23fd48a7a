"""Evidence providers backed by the saga store and optional OpenAI services."""
