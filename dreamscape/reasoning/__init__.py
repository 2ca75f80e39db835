"""
Reasoning service access.

Responsibilities:
- Transport to an OpenAI-compatible chat completion service
- Serialized request queue with pacing, timeouts and a simulate mode
- TTL response cache with optional persistence
- Prompt construction and response parsing
- Token and request budget tracking
"""

from .request_queue import QueueConfig, RequestQueue, make_cache_key
from .response_cache import CacheConfig, ResponseCache
from .transport import OpenAITransport, ReasoningTransport, TransportConfig
from .usage import UsageTracker
