"""FastAPI application for the smart task tracker."""
