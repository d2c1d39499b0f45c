"""
Analytics Service

Stage 3 of the warehouse build: derives BI-ready summary tables and views
from the clean model.

Key responsibilities:
- Skill, industry and company demand counts
- Salary normalization (annualized figures, ranges) and salary summaries
- Denormalized job overview for dashboards
- Replace all analytics tables and views atomically
"""

__version__ = "0.1.0"
