"""Application layer: wiring and CLI."""

from .school_details_app import SchoolDetailsApp

__all__ = ["SchoolDetailsApp"]
