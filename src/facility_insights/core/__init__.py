"""
Core data and analytics layer.

This package contains:
- tabular_parser: tolerant CSV parsing into field -> value records
- coercion: lenient number / yes-no interpretation and rounding
- location_hierarchy: coded district > subcounty > parish > village tree, resolver and filter
- facilities: categories and canonical facility records
- benchmarks: reference values, gaps and severity
- metrics: per-category aggregation
- breakdown: per-subcounty ranking
- data_loader: sources, cache and schema description
- query_engine: high-level query API
- audit: fact snapshot for the narrative layer
"""
