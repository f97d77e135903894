"""
FITSCORE - Fit Inference Through Specialized, Concurrent, Orchestrated Resume Evaluation

Scores how well a candidate resume fits a job description by running several
independent analyses concurrently and combining them into one composite score.

Architecture:
- Storage Context: Subject records, per-analysis results, context ledger, analytics
- Isolation Context: Execution context lifecycle and tiered isolation providers
- Analysis Context: Analysis Unit contract and the five specialized analyzers
- Coordination Context: Concurrent dispatch, timeouts, weighted aggregation
"""

__version__ = "0.1.0"
