"""Public intake resources for tracking events and conversions."""
