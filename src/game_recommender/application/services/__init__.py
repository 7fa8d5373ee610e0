"""Application services shared by handlers and pipeline steps."""
