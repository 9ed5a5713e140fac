"""feedmatch core package.

Modules:
- items: feed item model and description parsing
- predicates / filter_sets / rule_filters: generic rule filter evaluation
- authors: per-feed author filters and global author subscriptions
- snapshot: compiled, reloadable view of the reference data
- orchestrator: per-item decision (categorize, notify, or manual queue)
- ledger / manual_queue: subscription dedup ledger and manual review queue
- ports / notifications: outbound interfaces and notification payloads
- database / models / repository / migrations: SQLite persistence
- monitor: Watchdog-based configuration change monitoring
- api: FastAPI app and service endpoints
- config: INI parsing and config object
"""
