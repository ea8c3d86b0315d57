"""Crime alert proximity service.

- core: pure functions (geo, incidents, zones, proximity, dedup, formatting)
- shell: I/O adapters (Firestore, Expo push, location, config)
- driver / monitor: background and foreground alerting
"""
