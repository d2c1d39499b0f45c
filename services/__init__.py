"""Job Warehouse Services Package.

This package contains the stages of the job postings warehouse build:
- raw_loader: Loads the CSV export verbatim into raw TEXT tables
- normalizer: Builds the clean relational model (companies, jobs, links, salaries)
- analytics: Builds demand, activity and salary summary tables plus BI views
- pipeline: Runs the stages in order
"""

__version__ = "0.1.0"
