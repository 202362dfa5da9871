"""Pipeline Middleware — pure ASGI stages composed in main._install_pipeline."""
