"""Application package for the Project Tisa backend.

This package exposes the service, repository and model modules used by
the FastAPI application in `tisa.main`. Individual modules contain the
concrete implementations and documentation.
"""
