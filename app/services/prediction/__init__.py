"""
Match predictions backed by DeepSeek.

- deepseek_client: chat completions over httpx
- prediction_service: context building, answer cache, conversations
"""
