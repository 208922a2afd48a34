"""Session-scoped conversation memory for chat assistants."""
