"""
macrolens_pipeline.analytics — statistics computed on resolved series.

  correlation  — windowed Pearson correlation of daily log returns
  freshness    — latest-available-value selection and staleness status
"""
