"""
API routes.

This module organizes routes into:
- sync: Previous-match sync trigger, status and upcoming fixtures
- statistics: Season aggregates per league
- predictions: Natural-language predictions and conversations
"""
