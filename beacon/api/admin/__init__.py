"""Administrative resources for destination management."""
