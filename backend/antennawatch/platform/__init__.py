"""Platform components."""
