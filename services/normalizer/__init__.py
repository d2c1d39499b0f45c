"""
Normalizer Service

Stage 2 of the warehouse build: turns the untyped raw staging tables into a
clean relational model.

Key responsibilities:
- Canonicalize company identifiers so every join uses the same key
- Deduplicate the Company, Industry and Skill dimensions
- Build the Job fact (inner join to companies) with typed numeric fields
- Build link tables and the typed salary fact, dropping dangling references
- Replace all clean tables atomically
"""

__version__ = "0.1.0"
