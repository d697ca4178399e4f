"""SCTR enrichment pipeline.

Takes a list of ticker symbols, looks them up in the StockCharts Technical
Rank dataset and enriches each row with industry/sector classification,
peer-relative strength and an industry-level 50-day moving-average trend.
"""

__version__ = "1.0.0"
