"""Text generation backends."""
