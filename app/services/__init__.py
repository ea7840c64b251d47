"""Clients for the upstream video search API."""
