"""Alembic migrations for the lock table"""
