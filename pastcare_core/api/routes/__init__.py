"""API routes for PastCare Core."""
