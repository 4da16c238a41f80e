"""Core Business Logic Module

This module provides the identity lifecycle logic, independent of the CLI.

Module Structure:
    - graph/            : Low-level Microsoft Graph client and services
    - directory.py      : DirectoryClient capability interface + Graph implementation
    - models.py         : Identity records, operation parameters, tagged results
    - validators.py     : Input validation and strict coercion
    - mapper.py         : CSV row -> operation parameters
    - gate.py           : Dry-run / confirmation gate for mutating calls
    - operations/       : Onboard, Update, Offboard
    - batch.py          : Row-by-row bulk processor and run summary
    - logger.py         : File + console run logging

Usage Pattern:
    Import explicitly when needed:
        from lifecycle.core.directory import GraphDirectory
        from lifecycle.core.operations import OnboardOperation
        from lifecycle.core.batch import BatchProcessor
"""
