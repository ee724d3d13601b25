"""Pipeline orchestration, data model and configuration."""
