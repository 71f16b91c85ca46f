"""
Feature modules for the vARY backend.

Each module is self-contained with its own:
- interfaces.py: Protocol definitions for the module's stores and services
- models.py: Pydantic models for records and API bodies
- service.py: Business logic implementation
- routes.py: FastAPI route handlers
- exceptions.py: Module-specific exceptions

Modules communicate through interfaces, not concrete implementations.
"""
