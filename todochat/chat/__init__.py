"""Streaming chat orchestration: transcript, session state machine, events.

Import from the submodules directly (``todochat.chat.session``,
``todochat.chat.transcript``, ``todochat.chat.events``).
"""
