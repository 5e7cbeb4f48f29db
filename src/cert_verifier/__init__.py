"""
cert_verifier — certificate bulk import and public verification service.

Providers import certificate records from CSV files (validated,
duplicate-checked, inserted all-or-nothing); anyone can verify a
certificate by holder name and certificate number, and every attempt
is audit-logged in PostgreSQL.

Built on railway-oriented result types: business functions return
Result values instead of raising.
"""

__version__ = "0.1.0"
