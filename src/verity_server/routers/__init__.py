"""FastAPI routers for API endpoints, organized by resource."""
