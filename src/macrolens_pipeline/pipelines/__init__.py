"""
macrolens_pipeline.pipelines — indicator catalog, resolver and batch driver.

  catalog   — INDICATORS: statically declared provider identifiers
  resolver  — SourceResolver: ordered provider fallback for one indicator
  batch     — resolve_batch: many indicators, bounded concurrency, deadline
"""
