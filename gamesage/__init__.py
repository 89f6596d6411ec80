"""
GameSage - conversational video game data analyst.

This package answers natural-language questions about video games by letting
an LLM call a small set of tools: a RAWG game-data fetcher and statistics
calculators. Results stream back to the caller as tool events plus a final answer.
"""

__version__ = "0.1.0"
