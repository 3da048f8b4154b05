"""Core domain package for hookrelay.

Core contains rules, matching, extraction and dispatch logic without any HTTP
or storage-specific code, keeping the business logic portable.
"""
