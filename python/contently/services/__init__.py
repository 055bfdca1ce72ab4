"""Service layer for ContentlyAI.

Identity, conversations, message sending, content analysis, user settings
and LLM generation live here. Route handlers validate input and call one
service function; services own queries and commits.
"""
