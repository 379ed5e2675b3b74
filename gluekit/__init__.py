"""Provider-agnostic building blocks for tool-using LLM agents.

The package has these modules: ``types``, ``loop``, ``failover``,
``compactor``, ``project_context``, ``prompts``, ``echo`` and
``local_time``.
"""

__version__ = "0.1.0"