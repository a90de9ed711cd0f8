"""Agent directory with reputation scoring and policy compliance."""
