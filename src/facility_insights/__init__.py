"""Facility metrics for district health and education infrastructure."""
