"""Generative-oracle boundary."""
from storebot.llm.oracle import OpenAIOracle, Oracle, OracleError, OracleImage

__all__ = ["OpenAIOracle", "Oracle", "OracleError", "OracleImage"]
