"""
Match Data Sync Service

Reconciles TheSportsDB fixtures and results with the local store and
enriches every match with venue coordinates and kickoff weather.

Key components:
- Adapters: Rate-limited TheSportsDB client and OpenWeather client
- Venue resolver: Venue name/id to coordinates, cached in the venues table
- Lock: Distributed lock + status record in the key-value store
- Orchestrator: Season-by-season, league-by-league sync loop
"""
