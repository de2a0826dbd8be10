"""
OpenAI-compatible chat client for the narrative collaborator.
One client is kept per (key, endpoint, timeout) combination.
"""
from functools import lru_cache

from openai import OpenAI


@lru_cache(maxsize=8)
def get_llm_client(api_key: str, base_url: str, timeout: float) -> OpenAI:
    # 超时即降级为模拟数据，不做重试
    return OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)
