"""Agentflow package."""

from .config import AgentConfig, AppSettings, CorpusConfig, RetrievalConfig

__all__ = ["AgentConfig", "AppSettings", "CorpusConfig", "RetrievalConfig"]
