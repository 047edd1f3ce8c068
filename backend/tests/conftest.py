import os

# Settings must be in place before mealplanner.config is first imported
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("SQLALCHEMY_DATABASE_URL", "sqlite://")
os.environ.setdefault("LLM_PROVIDER", "ollama")
os.environ.setdefault("LANGFUSE_TRACING_ENABLED", "false")
