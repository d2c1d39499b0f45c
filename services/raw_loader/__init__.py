"""
Raw Loader Service

Stage 1 of the warehouse build: loads each CSV export of the job-postings
dataset verbatim into its own TEXT-only staging table.

Key responsibilities:
- Check that every source file exists and has the contract header
- Drop and recreate one raw table per source file
- Bulk load with COPY, preserving original values without interpretation
"""

__version__ = "0.1.0"
