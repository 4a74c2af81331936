"""API schemas for PastCare Core."""
