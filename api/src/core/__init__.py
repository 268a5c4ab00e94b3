"""Logging, request context, Cassandra and Redis plumbing shared by every module."""
