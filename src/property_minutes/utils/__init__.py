"""Shared exceptions, logging, validation and text helpers."""
