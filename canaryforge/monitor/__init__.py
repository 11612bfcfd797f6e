"""Read-only views over run results and the release ledger.

Modules
-------
projection
    ``LedgerProjection`` folds a build's ledger entries into a frozen
    ``BuildTimeline``.
renderer
    ``RunRenderer`` turns run reports, timelines and promotion history
    into Rich renderables for terminal display.
"""
