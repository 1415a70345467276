"""
Services module for business logic.

This module organizes services into:
- sync: TheSportsDB/OpenWeather ingestion (clients, venue resolver, lock, orchestrator)
- statistics_service: League table, form, head-to-head and weather aggregates
- prediction: DeepSeek-backed match predictions with cached answers and conversations
"""
