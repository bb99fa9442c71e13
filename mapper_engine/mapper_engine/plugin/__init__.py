"""Interceptor plugins."""

from __future__ import annotations

from mapper_engine.plugin.interceptor import Interceptor, InterceptorChain, Invocation, Plugin, Signature, intercepts

__all__ = ["Interceptor", "InterceptorChain", "Invocation", "Plugin", "Signature", "intercepts"]
