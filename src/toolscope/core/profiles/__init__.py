"""Profiles: portable bundles of tool references and captured content."""
