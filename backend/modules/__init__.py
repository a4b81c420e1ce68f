"""
Feature modules for the CareLink backend.

Each module is self-contained with its own:
- interfaces.py: Protocol definitions for the module's public API
- models.py: Pydantic models for data transfer
- exceptions.py: Module-specific exceptions
- service.py (or ledger.py / reconciler.py): implementation

Modules communicate through interfaces, not concrete implementations.
"""
