"""Data subpackage - seed data loading."""
