"""Rules subpackage - parsing of discount rule and policy logic definitions."""
